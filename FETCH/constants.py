"""
Spotify 연동 상수

시간 단위는 모두 초.
"""

SPOTIFY_ACCOUNTS_URL = "https://accounts.spotify.com"
SPOTIFY_API_URL = "https://api.spotify.com/v1"

# 재시도
MAX_RETRIES = 1
REQUEST_TIMEOUT = 25.0

# 429 대기 (retry-after 없으면 기본 20초, 1~180초로 clamp)
DEFAULT_RATE_LIMIT_DELAY = 20.0
MIN_RATE_LIMIT_DELAY = 1.0
MAX_RATE_LIMIT_DELAY = 180.0

# 5xx / 네트워크 오류 backoff: 0.5 * 2^attempt + jitter(<0.25), 최대 3.5초
BACKOFF_BASE = 0.5
BACKOFF_JITTER = 0.25
BACKOFF_CAP = 3.5

# audio-features 엔드포인트 배치 상한
AUDIO_FEATURES_BATCH = 100

# 페이지 크기 상한
LIKED_PAGE_MAX = 50
RECENT_PAGE_MAX = 50
SAVED_ALBUM_PAGE_MAX = 20

# 토큰 만료 45초 전이면 갱신
TOKEN_REFRESH_MARGIN = 45.0
