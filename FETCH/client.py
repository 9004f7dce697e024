"""
Spotify HTTP Client - timeout + 재시도 + 공용 rate limit

동작 방식:
1. 요청 전 공용 RateLimitState에 cool-down이 남아 있으면 대기 (1~180초)
2. 요청별 타임아웃 25초
3. 429 → retry-after(초) 읽어서 공용 cool-down 연장 (없으면 20초)
4. 재시도 최대 1회: 429, 5xx, 네트워크 오류만. 401/403 등은 즉시 실패
5. 5xx/네트워크 backoff: 0.5s * 2^attempt + jitter(<0.25s), 최대 3.5초
6. 2xx → 공용 cool-down 즉시 해제
"""
import asyncio
import logging
import math
import random
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .constants import (
    BACKOFF_BASE,
    BACKOFF_CAP,
    BACKOFF_JITTER,
    DEFAULT_RATE_LIMIT_DELAY,
    MAX_RETRIES,
    REQUEST_TIMEOUT,
    SPOTIFY_API_URL,
)
from .errors import HttpError, ResponseParseError, TransportError, error_for_status
from .rate_limit import RateLimitState, clamp_rate_limit_delay, shared_rate_limit

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def rate_limit_delay(response: httpx.Response) -> float:
    """429 응답의 retry-after 헤더 → 대기 시간(초)"""
    retry_after = response.headers.get("retry-after")
    if retry_after:
        try:
            seconds = float(retry_after)
        except ValueError:
            seconds = math.nan
        if math.isfinite(seconds) and seconds >= 0:
            return clamp_rate_limit_delay(seconds)
    return DEFAULT_RATE_LIMIT_DELAY


def backoff_delay(attempt: int, rand: Callable[[], float] = random.random) -> float:
    """5xx / 네트워크 오류 재시도 대기 시간(초)"""
    backoff = BACKOFF_BASE * (2 ** attempt)
    jitter = rand() * BACKOFF_JITTER
    return min(BACKOFF_CAP, backoff + jitter)


class SpotifyClient:
    """
    Spotify Web API 호출 래퍼.

    Args:
        rate_limit: 공용 RateLimitState (기본: 프로세스 전역 인스턴스)
        timeout: 요청별 타임아웃(초)
        transport: httpx transport (테스트에서 MockTransport 주입)
        sleep: 대기 함수 (테스트에서 가짜 sleep 주입)
        rand: jitter 난수 함수
    """

    def __init__(
        self,
        rate_limit: Optional[RateLimitState] = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.rate_limit = rate_limit or shared_rate_limit
        self.timeout = timeout
        self.transport = transport
        self._sleep = sleep
        self._rand = rand

    async def fetch(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        auth: Optional[httpx.Auth] = None,
    ) -> httpx.Response:
        """
        재시도/공용 backoff를 적용한 HTTP 호출.

        Returns:
            2xx 응답

        Raises:
            TransportError: 네트워크 오류 (재시도 후)
            HttpError 계열: 2xx 이외 최종 응답
        """
        last_error: Optional[Exception] = None

        for attempt in range(MAX_RETRIES + 1):
            wait = self.rate_limit.remaining()
            if wait > 0:
                await self._sleep(clamp_rate_limit_delay(wait))

            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.request(
                        method, url, headers=headers, params=params, data=data, auth=auth
                    )
            except httpx.TransportError as e:
                last_error = e
                logger.warning(f"[Spotify] {method} {url} → {type(e).__name__} (attempt {attempt + 1})")
                if attempt == MAX_RETRIES:
                    break
                await self._sleep(backoff_delay(attempt, self._rand))
                continue

            status = response.status_code
            if response.is_success:
                self.rate_limit.clear()
                return response

            if status == 429:
                self.rate_limit.extend(rate_limit_delay(response))

            retryable = status == 429 or status >= 500
            if not retryable or attempt == MAX_RETRIES:
                raise self._http_error(response)

            next_delay = rate_limit_delay(response) if status == 429 else backoff_delay(attempt, self._rand)
            logger.info(f"[Spotify] {method} {url} → HTTP {status}, retry in {next_delay:.2f}s")
            await self._sleep(next_delay)

        message = str(last_error) or type(last_error).__name__
        raise TransportError(f"Spotify request failed: {message}") from last_error

    def _http_error(self, response: httpx.Response) -> HttpError:
        body = response.text[:500]
        logger.warning(f"[Spotify] {response.request.method} {response.request.url} → HTTP {response.status_code}")
        return error_for_status(response.status_code, body, retry_after=self.rate_limit.remaining())

    async def get_json(
        self,
        path_or_url: str,
        access_token: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Bearer 토큰으로 GET 후 JSON 반환. path면 API base URL을 붙인다."""
        url = path_or_url if path_or_url.startswith("http") else f"{SPOTIFY_API_URL}{path_or_url}"
        response = await self.fetch(
            "GET",
            url,
            headers={"Authorization": f"Bearer {access_token}"},
            params=params,
        )
        try:
            return response.json()
        except ValueError as e:
            raise ResponseParseError(f"Invalid JSON from {url}: {e}") from e

    async def get_model(
        self,
        path_or_url: str,
        access_token: str,
        model: Type[ModelT],
        params: Optional[Dict[str, Any]] = None,
    ) -> ModelT:
        """GET 후 pydantic 모델로 검증. 누락/타입 오류는 ResponseParseError."""
        payload = await self.get_json(path_or_url, access_token, params=params)
        return parse_model(model, payload, source=path_or_url)


def parse_model(model: Type[ModelT], payload: Any, source: str = "") -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ResponseParseError(f"Unexpected {model.__name__} payload from {source}: {e}") from e
