"""
Music Sphere Service Configuration

환경 변수 / .env 파일에서 읽어오는 서비스 설정.
- Spotify 앱 자격 증명
- 세션 저장소 DB URL
- HTTP 타임아웃, 임베딩 시드
"""
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # Spotify 앱
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = ""

    # 세션 저장소 (SQLAlchemy URL)
    database_url: str = f"sqlite:///{BASE_DIR / '.cache' / 'music_sphere.db'}"

    # Spotify HTTP 호출 타임아웃(초)
    request_timeout: float = 25.0

    # PCA power iteration 시드 (None이면 실행마다 달라짐)
    embedding_seed: Optional[int] = None

    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    environment: str = "development"
    port: int = 8000

    class Config:
        env_file = ".env"
        extra = "allow"


def get_settings() -> Settings:
    """설정 인스턴스 반환"""
    return Settings()


def get_spotify_credentials(settings: Optional[Settings] = None) -> Tuple[str, str]:
    """Client id/secret pair, failing loudly when either is unset."""
    settings = settings or get_settings()
    if not settings.spotify_client_id:
        raise RuntimeError("Missing environment variable: SPOTIFY_CLIENT_ID")
    if not settings.spotify_client_secret:
        raise RuntimeError("Missing environment variable: SPOTIFY_CLIENT_SECRET")
    return settings.spotify_client_id, settings.spotify_client_secret
