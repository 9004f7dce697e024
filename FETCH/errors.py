"""
Spotify 호출 오류 분류

- TransportError         : 네트워크/타임아웃 (1회 재시도 후 노출)
- HttpError              : 2xx 이외 최종 응답
  - AuthError            : 401 / 토큰 없음 (재시도 안 함)
  - SpotifyPermissionError : 403 (scope 권한 없음 → 소스 단위로 빈 결과 처리)
  - RateLimitedError     : 429 (남은 대기 시간 포함)
- ResponseParseError     : 응답 JSON이 스키마와 맞지 않음
- SyncTimeoutError       : 단계별 타임아웃(envelope) 초과
"""
from typing import Optional


class SpotifyError(Exception):
    """Spotify 연동 오류 기본 클래스"""


class TransportError(SpotifyError):
    pass


class HttpError(SpotifyError):
    def __init__(self, status: int, body: str = "", message: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message or f"HTTP {status}: {body}")


class AuthError(HttpError):
    def __init__(self, message: str = "Not authenticated with Spotify.", body: str = ""):
        super().__init__(401, body, message)


class SpotifyPermissionError(HttpError):
    def __init__(self, body: str = ""):
        super().__init__(403, body)


class RateLimitedError(HttpError):
    def __init__(self, retry_after: float, body: str = ""):
        self.retry_after = retry_after
        super().__init__(429, body)

    @property
    def retry_after_ms(self) -> int:
        return int(round(self.retry_after * 1000))


class ResponseParseError(SpotifyError):
    pass


class SyncTimeoutError(SpotifyError, TimeoutError):
    pass


def error_for_status(status: int, body: str = "", retry_after: float = 0.0) -> HttpError:
    """상태 코드에 맞는 HttpError 하위 클래스 생성"""
    if status == 401:
        return AuthError(body=body)
    if status == 403:
        return SpotifyPermissionError(body)
    if status == 429:
        return RateLimitedError(retry_after, body)
    return HttpError(status, body)
