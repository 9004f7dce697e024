"""
프로세스 공용 Rate Limit 상태

Spotify rate limit은 계정(앱) 단위이므로 동시에 나가는 모든 요청이
하나의 "unavailable until" 시각을 공유한다.
- 요청 전: 남은 cool-down 만큼 대기
- 429 응답: cool-down 연장 (기존 값보다 줄이지 않음)
- 2xx 응답: 즉시 해제
"""
import logging
import math
import threading
import time
from typing import Callable, Tuple

from .constants import DEFAULT_RATE_LIMIT_DELAY, MAX_RATE_LIMIT_DELAY, MIN_RATE_LIMIT_DELAY

logger = logging.getLogger(__name__)


def clamp_rate_limit_delay(seconds: float) -> float:
    """429 대기 시간을 [1, 180]초로 제한. 비정상 값이면 기본 20초."""
    if seconds is None or not math.isfinite(seconds) or seconds <= 0:
        return DEFAULT_RATE_LIMIT_DELAY
    return max(MIN_RATE_LIMIT_DELAY, min(MAX_RATE_LIMIT_DELAY, seconds))


class RateLimitState:
    """
    공유 cool-down 상태.

    clock은 주입 가능 (테스트에서 가짜 시계 사용).
    읽기-수정-쓰기는 lock 안에서만 수행한다. lock 구간 안에 await가 없으므로
    asyncio 태스크 간, 스레드 간 모두 안전하다.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._limited_until = 0.0

    def _normalize(self) -> float:
        now = self._clock()
        remaining = self._limited_until - now
        if not math.isfinite(remaining) or remaining <= 0:
            self._limited_until = 0.0
            return 0.0
        clamped = min(MAX_RATE_LIMIT_DELAY, remaining)
        self._limited_until = now + clamped
        return clamped

    def remaining(self) -> float:
        """남은 cool-down(초). 만료됐으면 0으로 리셋."""
        with self._lock:
            return self._normalize()

    def extend(self, delay: float) -> float:
        """cool-down을 최소 delay초로 연장. 이미 더 길게 잡혀 있으면 유지."""
        with self._lock:
            current = self._normalize()
            wait = max(current, delay)
            self._limited_until = self._clock() + wait
        logger.warning(f"[RateLimit] cool-down {wait:.1f}s (requested {delay:.1f}s)")
        return wait

    def clear(self) -> None:
        with self._lock:
            self._limited_until = 0.0

    def snapshot(self) -> Tuple[bool, float]:
        """(limited, retry_after 초)"""
        retry_after = self.remaining()
        return retry_after > 0, retry_after


# 전역 공용 인스턴스 (서버 수명 동안 유지)
shared_rate_limit = RateLimitState()
