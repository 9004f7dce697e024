"""
Library Sync API Router
라이브러리 동기화, 진행 상황, 구면 데이터, 세션 상태 API

세션은 music_sphere_session 쿠키로 식별한다 (없으면 새로 발급).
"""
import logging
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import get_settings
from FETCH.auth import ensure_valid_access_token
from FETCH.errors import SpotifyError

from .debug import run_probes
from .progress import idle_progress
from .service import MSG_NOT_AUTHENTICATED, SyncFailure, SyncService
from .store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Library Sync"])

SESSION_COOKIE_NAME = "music_sphere_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 30
MSG_NO_SPHERE = "No sphere data found. Sync your library first."


# ==================== Dependencies ====================

@lru_cache()
def get_session_store() -> SessionStore:
    """FastAPI Dependency: 기본 세션 저장소 (DATABASE_URL)"""
    return SessionStore()


def get_sync_service(store: SessionStore = Depends(get_session_store)) -> SyncService:
    return SyncService(store)


@dataclass
class SessionCookie:
    session_id: str
    is_new: bool


def get_session_cookie(request: Request) -> SessionCookie:
    existing = request.cookies.get(SESSION_COOKIE_NAME)
    if existing:
        return SessionCookie(existing, False)
    return SessionCookie(str(uuid.uuid4()), True)


def respond(content: Any, session: SessionCookie, status_code: int = 200) -> JSONResponse:
    """JSON 응답 + 새 세션이면 쿠키 발급"""
    response = JSONResponse(content=content, status_code=status_code)
    if session.is_new:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            session.session_id,
            max_age=SESSION_MAX_AGE,
            path="/",
            httponly=True,
            samesite="lax",
            secure=get_settings().environment == "production",
        )
    return response


# ==================== Request/Response Models ====================

class SyncRequest(BaseModel):
    mode: Optional[str] = None
    limit: Optional[Any] = None


class SyncResponse(BaseModel):
    ok: bool
    mode: str
    generated_at: str
    track_count: int


# ==================== API Endpoints ====================

@router.post("/library/sync")
async def sync_library(
    request: Optional[SyncRequest] = None,
    session: SessionCookie = Depends(get_session_cookie),
    service: SyncService = Depends(get_sync_service),
):
    """
    Spotify 라이브러리 동기화 후 구면 데이터 생성

    - quick: 좋아요 + 최근 재생 (기본 20곡)
    - full: 저장한 앨범까지 (기본 180곡)
    """
    request = request or SyncRequest()
    try:
        sphere = await service.sync(session.session_id, request.mode, request.limit)
    except SyncFailure as e:
        return respond(
            {"error": e.message, "retry_after_ms": e.retry_after_ms},
            session,
            status_code=e.status_code,
        )

    body = SyncResponse(
        ok=True,
        mode="full" if request.mode == "full" else "quick",
        generated_at=sphere.generated_at,
        track_count=sphere.track_count,
    )
    return respond(body.model_dump(mode="json"), session)


@router.get("/library/progress")
async def get_sync_progress(
    session: SessionCookie = Depends(get_session_cookie),
    store: SessionStore = Depends(get_session_store),
):
    """마지막 sync 진행 상황 (없으면 idle)"""
    data = store.get_session_data(session.session_id)
    progress = data.sync_progress or idle_progress()
    return respond(progress.model_dump(mode="json"), session)


@router.get("/sphere")
async def get_sphere(
    session: SessionCookie = Depends(get_session_cookie),
    store: SessionStore = Depends(get_session_store),
):
    """저장된 구면 데이터"""
    data = store.get_session_data(session.session_id)
    if data.tokens is None:
        return respond({"error": MSG_NOT_AUTHENTICATED}, session, status_code=401)
    if data.sphere is None:
        return respond({"error": MSG_NO_SPHERE}, session, status_code=404)
    return respond(data.sphere.model_dump(mode="json"), session)


@router.get("/auth/status")
async def auth_status(
    session: SessionCookie = Depends(get_session_cookie),
    store: SessionStore = Depends(get_session_store),
):
    data = store.get_session_data(session.session_id)
    authenticated = data.tokens is not None
    return respond(
        {
            "session_id": session.session_id,
            "authenticated": authenticated,
            "profile": data.profile.model_dump(mode="json") if authenticated and data.profile else None,
            "has_sphere": data.sphere is not None,
            "track_count": data.sphere.track_count if data.sphere else 0,
        },
        session,
    )


@router.post("/auth/logout")
async def logout(
    session: SessionCookie = Depends(get_session_cookie),
    store: SessionStore = Depends(get_session_store),
):
    """세션 데이터 삭제 + 쿠키 제거"""
    store.clear_session(session.session_id)
    logger.info(f"[Sync] {session.session_id}: logged out")
    response = JSONResponse(content={"ok": True})
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/debug/spotify")
async def debug_spotify(
    session: SessionCookie = Depends(get_session_cookie),
    service: SyncService = Depends(get_sync_service),
):
    """Spotify 엔드포인트 직접 호출 결과 (연결 진단용)"""
    data = service.store.get_session_data(session.session_id)
    if data.tokens is None:
        return respond(
            {"authenticated": False, "error": MSG_NOT_AUTHENTICATED},
            session,
            status_code=401,
        )

    try:
        tokens = await ensure_valid_access_token(service.client, data.tokens, settings=service.settings)
    except (SpotifyError, RuntimeError) as e:
        return respond(
            {"authenticated": True, "token_refresh_ok": False, "refresh_error": str(e)},
            session,
            status_code=500,
        )
    if tokens != data.tokens:
        service.store.set_session_tokens(session.session_id, tokens)

    probes = await run_probes(service.client, tokens.access_token)
    limited, retry_after = service.client.rate_limit.snapshot()

    return respond(
        {
            "authenticated": True,
            "token_refresh_ok": True,
            "session_id": session.session_id,
            "rate_limit_state": {
                "limited": limited,
                "retry_after_ms": int(round(retry_after * 1000)),
            },
            "probes": {
                name: result.model_dump(mode="json") if result is not None else None
                for name, result in probes.items()
            },
        },
        session,
    )
