"""
Sync 진행 상황 레코드

단계별 고정 지점:
auth(8) → tracks(20→55, 수집량에 비례) → features(58) → embedding(84) → done/error(100)
"""
import math
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel

PERCENT_AUTH = 8
PERCENT_TRACKS_START = 20
PERCENT_TRACKS_SPAN = 35
PERCENT_FEATURES = 58
PERCENT_EMBEDDING = 84
PERCENT_DONE = 100


class SyncProgress(BaseModel):
    status: Literal["idle", "running", "done", "error"]
    percent: int
    phase: str
    message: str
    updated_at: str
    track_count: Optional[int] = None
    error: Optional[str] = None


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def idle_progress() -> SyncProgress:
    return SyncProgress(
        status="idle",
        percent=0,
        phase="idle",
        message="Waiting to sync.",
        updated_at=now_iso(),
    )


def running_progress(percent: int, phase: str, message: str) -> SyncProgress:
    return SyncProgress(
        status="running",
        percent=percent,
        phase=phase,
        message=message,
        updated_at=now_iso(),
    )


def done_progress(track_count: int) -> SyncProgress:
    return SyncProgress(
        status="done",
        percent=PERCENT_DONE,
        phase="done",
        message="Sync complete.",
        updated_at=now_iso(),
        track_count=track_count,
    )


def error_progress(message: str) -> SyncProgress:
    return SyncProgress(
        status="error",
        percent=PERCENT_DONE,
        phase="error",
        message=message,
        updated_at=now_iso(),
        error=message,
    )


def track_fetch_percent(fetched: int, limit: int) -> int:
    """20%에서 시작해 수집량/limit 비율만큼 최대 35 포인트 증가 (반올림은 half-up)"""
    ratio = min(fetched, limit) / max(limit, 1)
    percent = PERCENT_TRACKS_START + math.floor(ratio * PERCENT_TRACKS_SPAN + 0.5)
    return min(PERCENT_TRACKS_START + PERCENT_TRACKS_SPAN, percent)
