import asyncio

import httpx
import pytest

from config import Settings
from FETCH.auth import ensure_valid_access_token, fetch_current_user_profile, refresh_access_token
from FETCH.client import SpotifyClient
from FETCH.models import SpotifyTokenSet
from FETCH.rate_limit import RateLimitState

SETTINGS = Settings(spotify_client_id="cid", spotify_client_secret="secret")


def make_client(handler, fake_sleep):
    return SpotifyClient(rate_limit=RateLimitState(), transport=httpx.MockTransport(handler), sleep=fake_sleep)


def test_valid_token_is_returned_unchanged(clock, fake_sleep):
    def handler(request):
        raise AssertionError("no request expected")

    tokens = SpotifyTokenSet(access_token="a", refresh_token="r", expires_at=clock() + 3600)
    result = asyncio.run(ensure_valid_access_token(make_client(handler, fake_sleep), tokens, SETTINGS, clock))

    assert result is tokens


def test_expiring_token_is_refreshed(clock, fake_sleep):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"access_token": "new", "token_type": "Bearer", "expires_in": 3600})

    tokens = SpotifyTokenSet(access_token="old", refresh_token="r1", expires_at=clock() + 10)
    result = asyncio.run(ensure_valid_access_token(make_client(handler, fake_sleep), tokens, SETTINGS, clock))

    assert result.access_token == "new"
    assert result.refresh_token == "r1"
    assert result.expires_at == clock() + 3600
    assert str(seen[0].url) == "https://accounts.spotify.com/api/token"
    assert seen[0].headers["Authorization"].startswith("Basic ")
    assert b"grant_type=refresh_token" in seen[0].content


def test_new_refresh_token_replaces_old(clock, fake_sleep):
    def handler(request):
        return httpx.Response(
            200,
            json={"access_token": "new", "token_type": "Bearer", "expires_in": 60, "refresh_token": "r2"},
        )

    tokens = SpotifyTokenSet(access_token="old", refresh_token="r1", expires_at=0)
    result = asyncio.run(refresh_access_token(make_client(handler, fake_sleep), tokens, SETTINGS, clock))

    assert result.refresh_token == "r2"


def test_missing_credentials(clock, fake_sleep):
    tokens = SpotifyTokenSet(access_token="old", refresh_token="r1", expires_at=0)
    client = make_client(lambda request: httpx.Response(200), fake_sleep)

    with pytest.raises(RuntimeError, match="SPOTIFY_CLIENT_ID"):
        asyncio.run(refresh_access_token(client, tokens, Settings(spotify_client_id="", spotify_client_secret=""), clock))


def test_profile_falls_back_to_id_for_display_name(fake_sleep):
    def handler(request):
        return httpx.Response(200, json={"id": "user1", "display_name": None, "country": "KR"})

    profile = asyncio.run(fetch_current_user_profile(make_client(handler, fake_sleep), "token"))

    assert profile.id == "user1"
    assert profile.display_name == "user1"
    assert profile.country == "KR"
