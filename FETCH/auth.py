"""
Spotify 토큰 갱신 / 프로필 조회

OAuth 로그인(authorization code 교환)은 이 서비스 밖에서 처리한다.
여기서는 저장된 토큰 세트를 필요할 때 refresh 하는 것만 담당.
"""
import logging
import time
from typing import Callable, Optional

import httpx

from config import Settings, get_spotify_credentials

from .client import SpotifyClient, parse_model
from .constants import SPOTIFY_ACCOUNTS_URL, TOKEN_REFRESH_MARGIN
from .errors import ResponseParseError
from .models import SpotifyProfile, SpotifyTokenSet
from .schemas import MeResponse, TokenResponse

logger = logging.getLogger(__name__)


async def refresh_access_token(
    client: SpotifyClient,
    tokens: SpotifyTokenSet,
    settings: Optional[Settings] = None,
    clock: Callable[[], float] = time.time,
) -> SpotifyTokenSet:
    """refresh_token으로 새 access token 발급. 새 refresh token이 없으면 기존 것 유지."""
    client_id, client_secret = get_spotify_credentials(settings)

    response = await client.fetch(
        "POST",
        f"{SPOTIFY_ACCOUNTS_URL}/api/token",
        data={"grant_type": "refresh_token", "refresh_token": tokens.refresh_token},
        auth=httpx.BasicAuth(client_id, client_secret),
    )
    try:
        payload = response.json()
    except ValueError as e:
        raise ResponseParseError(f"Invalid JSON from /api/token: {e}") from e
    token = parse_model(TokenResponse, payload, source="/api/token")
    logger.info(f"[Auth] access token refreshed (expires in {token.expires_in}s)")

    return SpotifyTokenSet(
        access_token=token.access_token,
        refresh_token=token.refresh_token or tokens.refresh_token,
        expires_at=clock() + token.expires_in,
    )


async def ensure_valid_access_token(
    client: SpotifyClient,
    tokens: SpotifyTokenSet,
    settings: Optional[Settings] = None,
    clock: Callable[[], float] = time.time,
) -> SpotifyTokenSet:
    """만료까지 45초 넘게 남았으면 그대로, 아니면 refresh"""
    if tokens.expires_at - clock() >= TOKEN_REFRESH_MARGIN:
        return tokens
    return await refresh_access_token(client, tokens, settings=settings, clock=clock)


async def fetch_current_user_profile(client: SpotifyClient, access_token: str) -> SpotifyProfile:
    me = await client.get_model("/me", access_token, MeResponse)
    return SpotifyProfile(
        id=me.id,
        display_name=me.display_name or me.id,
        email=me.email,
        country=me.country,
        product=me.product,
    )
