"""
FETCH - Spotify Web API 연동

- client: timeout + 재시도 + 공용 rate limit HTTP 호출
- library: 좋아요/저장 앨범/최근 재생 트랙 동시 수집 + 중복 제거
- audio_features: 100개 단위 audio feature 배치 조회
- auth: 토큰 갱신, 프로필 조회
"""
from .client import SpotifyClient
from .rate_limit import RateLimitState, shared_rate_limit
from .models import AudioFeatures, RawTrack, SpotifyProfile, SpotifyTokenSet
from .library import fetch_user_tracks, FetchProgressObserver, NullProgressObserver
from .audio_features import fetch_audio_features
from .auth import ensure_valid_access_token, fetch_current_user_profile, refresh_access_token
from .errors import (
    SpotifyError,
    TransportError,
    HttpError,
    AuthError,
    SpotifyPermissionError,
    RateLimitedError,
    ResponseParseError,
    SyncTimeoutError,
)
