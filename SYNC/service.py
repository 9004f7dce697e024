"""
Library Sync Orchestrator

sync(mode, limit) 한 번 = 구면 데이터 한 세트 생성.

단계:
1. rate limit 사전 확인 (cool-down 중이면 바로 429)
2. 토큰 확인/갱신                              (8%)
3. 트랙 수집  (quick 28초 / full 60초 제한)      (20% → 55%)
4. audio feature 조회 (quick 35초 / full 50초)  (58%)
5. 임베딩 + 구면 배치                           (84%)
6. 저장                                         (100%)

실패하면 진행 상황에 error 레코드를 남기고 SyncFailure로 다시 던진다.
단계별 타임아웃을 넘기면 진행 중이던 작업은 취소되고 부분 결과는 버린다.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, TypeVar

import numpy as np

from config import Settings, get_settings
from FETCH.audio_features import fetch_audio_features
from FETCH.auth import ensure_valid_access_token, fetch_current_user_profile
from FETCH.client import SpotifyClient
from FETCH.errors import (
    AuthError,
    RateLimitedError,
    SpotifyPermissionError,
    SyncTimeoutError,
    TransportError,
)
from FETCH.library import fetch_user_tracks
from SPHERE.payload import SpherePayload, create_sphere_payload

from .progress import (
    PERCENT_AUTH,
    PERCENT_EMBEDDING,
    PERCENT_FEATURES,
    PERCENT_TRACKS_START,
    SyncProgress,
    done_progress,
    error_progress,
    running_progress,
    track_fetch_percent,
)
from .store import SessionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUICK_DEFAULT_LIMIT = 20
FULL_DEFAULT_LIMIT = 180
MIN_LIMIT = 20
MAX_LIMIT = 1000

# 단계별 타임아웃(초)
TRACK_FETCH_TIMEOUT = {"quick": 28.0, "full": 60.0}
FEATURE_FETCH_TIMEOUT = {"quick": 35.0, "full": 50.0}

MSG_NOT_AUTHENTICATED = "Not authenticated with Spotify."
MSG_FORBIDDEN = (
    "Spotify returned 403. Ensure your Spotify account is added to your app users "
    "in Spotify Dashboard, then reconnect and try again."
)
MSG_TRANSPORT = (
    "Spotify request timed out. Please retry Quick Sync; if it repeats, "
    "reconnect Spotify and try again."
)
MSG_TRACKS_TIMEOUT = "Spotify took too long to return your tracks. Retry Quick Sync."
MSG_FEATURES_TIMEOUT = "Spotify took too long to return audio features. Retry Quick Sync."


def rate_limited_message(retry_after: float) -> str:
    wait_sec = max(1, math.ceil(retry_after))
    return f"Spotify rate-limited requests (429). Wait {wait_sec}s and sync again."


@dataclass
class SyncOptions:
    mode: str
    limit: int
    include_liked_songs: bool
    include_saved_albums: bool
    include_recently_played: bool
    track_timeout: float
    feature_timeout: float


def resolve_sync_options(mode: Optional[str] = None, limit: Any = None) -> SyncOptions:
    """
    mode: "full"이 아니면 전부 quick 취급
    limit: 없거나 비정상 값이면 mode 기본값 (quick 20 / full 180), 있으면 [20, 1000]으로 clamp
    """
    mode = "full" if mode == "full" else "quick"
    default_limit = FULL_DEFAULT_LIMIT if mode == "full" else QUICK_DEFAULT_LIMIT

    resolved = default_limit
    if limit is not None:
        try:
            requested = float(limit)
        except (TypeError, ValueError):
            requested = math.nan
        if math.isfinite(requested):
            resolved = int(max(MIN_LIMIT, min(MAX_LIMIT, requested)))

    return SyncOptions(
        mode=mode,
        limit=resolved,
        include_liked_songs=True,
        include_saved_albums=mode == "full",
        include_recently_played=True,
        track_timeout=TRACK_FETCH_TIMEOUT[mode],
        feature_timeout=FEATURE_FETCH_TIMEOUT[mode],
    )


class SyncFailure(Exception):
    """sync 실패 - 사용자용 메시지 + HTTP 상태 + 재시도 대기(ms)"""

    def __init__(self, message: str, status_code: int = 500, retry_after_ms: int = 0):
        self.message = message
        self.status_code = status_code
        self.retry_after_ms = retry_after_ms
        super().__init__(message)


async def with_timeout(awaitable: Awaitable[T], seconds: float, message: str) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise SyncTimeoutError(message) from e


class SessionProgressObserver:
    """트랙 수집 진행 상황 → 세션 진행 레코드"""

    def __init__(self, service: "SyncService", session_id: str, limit: int, quick: bool):
        self._service = service
        self._session_id = session_id
        self._limit = limit
        self._quick = quick

    async def on_progress(self, fetched: int) -> None:
        label = "Fetching liked tracks..." if self._quick else "Fetching tracks from Spotify..."
        self._service.report(
            self._session_id,
            running_progress(
                track_fetch_percent(fetched, self._limit),
                "tracks",
                f"{label} ({fetched}/{self._limit})",
            ),
        )


class SyncService:
    """라이브러리 동기화 서비스"""

    def __init__(
        self,
        store: SessionStore,
        client: Optional[SpotifyClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.client = client or SpotifyClient(timeout=self.settings.request_timeout)

    def report(self, session_id: str, progress: SyncProgress) -> None:
        """진행 상황 저장은 best-effort"""
        try:
            self.store.set_session_sync_progress(session_id, progress)
        except Exception as e:
            logger.warning(f"[Sync] {session_id}: progress write failed: {e}")

    def _rng(self) -> Optional[np.random.Generator]:
        if self.settings.embedding_seed is None:
            return None
        return np.random.default_rng(self.settings.embedding_seed)

    def describe_failure(self, exc: Exception) -> SyncFailure:
        """예외 → 사용자용 메시지 / 상태 코드"""
        if isinstance(exc, SyncFailure):
            return exc
        if isinstance(exc, AuthError):
            return SyncFailure(MSG_NOT_AUTHENTICATED, status_code=401)
        if isinstance(exc, SpotifyPermissionError):
            return SyncFailure(MSG_FORBIDDEN)
        if isinstance(exc, RateLimitedError):
            _, remaining = self.client.rate_limit.snapshot()
            retry_after = max(remaining, exc.retry_after)
            return SyncFailure(
                rate_limited_message(retry_after),
                status_code=429,
                retry_after_ms=int(round(retry_after * 1000)),
            )
        if isinstance(exc, SyncTimeoutError):
            return SyncFailure(str(exc))
        if isinstance(exc, TransportError):
            return SyncFailure(MSG_TRANSPORT)
        return SyncFailure(str(exc) or "Sync failed unexpectedly.")

    async def sync(
        self,
        session_id: str,
        mode: Optional[str] = None,
        limit: Any = None,
        abort_event: Optional[asyncio.Event] = None,
    ) -> SpherePayload:
        """
        라이브러리 동기화 후 구면 데이터를 저장하고 반환.

        Raises:
            SyncFailure: 어느 단계든 실패 (진행 상황에 error 기록 후)
        """
        options = resolve_sync_options(mode, limit)
        started = time.monotonic()
        logger.info(f"[Sync] {session_id}: start mode={options.mode} limit={options.limit}")

        try:
            return await self._run(session_id, options, abort_event)
        except Exception as exc:
            failure = self.describe_failure(exc)
            logger.error(
                f"[Sync] {session_id}: failed after {time.monotonic() - started:.1f}s "
                f"({type(exc).__name__}: {exc})"
            )
            self.report(session_id, error_progress(failure.message))
            raise failure from exc

    async def _run(
        self,
        session_id: str,
        options: SyncOptions,
        abort_event: Optional[asyncio.Event],
    ) -> SpherePayload:
        session = self.store.get_session_data(session_id)
        if session.tokens is None:
            raise AuthError(MSG_NOT_AUTHENTICATED)

        limited, retry_after = self.client.rate_limit.snapshot()
        if limited:
            raise RateLimitedError(retry_after)

        self.report(session_id, running_progress(PERCENT_AUTH, "auth", "Verifying Spotify access..."))
        tokens = await ensure_valid_access_token(self.client, session.tokens, settings=self.settings)
        if tokens != session.tokens:
            self.store.set_session_tokens(session_id, tokens)

        if session.profile is None:
            try:
                profile = await fetch_current_user_profile(self.client, tokens.access_token)
                self.store.set_session_profile(session_id, profile)
            except (SpotifyPermissionError, TransportError) as e:
                logger.warning(f"[Sync] {session_id}: profile lookup skipped ({e})")

        # ========== 트랙 수집 ==========
        self.report(
            session_id,
            running_progress(PERCENT_TRACKS_START, "tracks", "Fetching tracks from Spotify..."),
        )
        observer = SessionProgressObserver(self, session_id, options.limit, options.mode == "quick")
        raw_tracks = await with_timeout(
            fetch_user_tracks(
                self.client,
                tokens.access_token,
                options.limit,
                include_liked_songs=options.include_liked_songs,
                include_saved_albums=options.include_saved_albums,
                include_recently_played=options.include_recently_played,
                observer=observer,
                abort_event=abort_event,
            ),
            options.track_timeout,
            MSG_TRACKS_TIMEOUT,
        )

        # ========== audio feature ==========
        self.report(
            session_id,
            running_progress(
                PERCENT_FEATURES,
                "features",
                f"Fetched {len(raw_tracks)} tracks. Fetching audio features...",
            ),
        )
        feature_map = await with_timeout(
            fetch_audio_features(self.client, [t.id for t in raw_tracks], tokens.access_token),
            options.feature_timeout,
            MSG_FEATURES_TIMEOUT,
        )

        # ========== 임베딩 ==========
        self.report(session_id, running_progress(PERCENT_EMBEDDING, "embedding", "Computing sphere layout..."))
        sphere = create_sphere_payload(raw_tracks, feature_map, rng=self._rng())

        self.store.set_session_sphere(session_id, sphere)
        self.report(session_id, done_progress(sphere.track_count))
        logger.info(f"[Sync] {session_id}: done, {sphere.track_count} tracks")
        return sphere
