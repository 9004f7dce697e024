"""
도메인 모델 - 파이프라인 단계 사이를 오가는 데이터
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RawTrack(BaseModel):
    """라이브러리에서 가져온 트랙 (생성 후 불변)"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    uri: Optional[str] = None
    artists: List[str] = Field(default_factory=list)
    album_name: str = ""
    album_art_url: Optional[str] = None
    external_url: Optional[str] = None
    preview_url: Optional[str] = None


class AudioFeatures(BaseModel):
    """
    트랙 오디오 피처.

    Spotify에서 받은 값이든 합성한 값이든 이후 단계에서는 구분하지 않는다.
    임베딩에는 8개 피처만 쓰고 key/loudness/mode/time_signature는 그대로 전달.
    """
    id: str
    danceability: float
    energy: float
    key: int
    loudness: float
    mode: int
    speechiness: float
    acousticness: float
    instrumentalness: float
    liveness: float
    valence: float
    tempo: float
    time_signature: int


class SpotifyTokenSet(BaseModel):
    access_token: str
    refresh_token: str = ""
    # epoch seconds
    expires_at: float


class SpotifyProfile(BaseModel):
    id: str
    display_name: str
    email: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None
