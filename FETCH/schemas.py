"""
Spotify 응답 스키마 - 엔드포인트별 레코드 타입

응답은 여기서 검증한 뒤에만 사용한다. 필수 필드 누락/타입 오류는
ResponseParseError로 처리 (조용히 None으로 넘기지 않음).
단, Spotify가 명시적으로 null을 주는 곳(로컬 파일 트랙, 없는 audio feature)은
Optional로 받고 집계 단계에서 건너뛴다.
"""
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from .models import AudioFeatures, RawTrack

ItemT = TypeVar("ItemT")


class SpotifyImage(BaseModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


class SpotifyArtistRef(BaseModel):
    name: str


class SpotifyAlbumRef(BaseModel):
    name: str = ""
    images: List[SpotifyImage] = Field(default_factory=list)


class SpotifyTrackObject(BaseModel):
    id: Optional[str] = None
    name: str
    uri: Optional[str] = None
    artists: List[SpotifyArtistRef]
    album: Optional[SpotifyAlbumRef] = None
    external_urls: Dict[str, str] = Field(default_factory=dict)
    preview_url: Optional[str] = None

    def to_raw_track(self, album: Optional[SpotifyAlbumRef] = None) -> Optional[RawTrack]:
        """RawTrack 변환. id 없는 트랙(로컬 파일 등)은 None."""
        if not self.id:
            return None

        album = self.album or album
        return RawTrack(
            id=self.id,
            name=self.name,
            uri=self.uri,
            artists=[artist.name for artist in self.artists],
            album_name=album.name if album else "",
            album_art_url=album.images[0].url if album and album.images else None,
            external_url=self.external_urls.get("spotify"),
            preview_url=self.preview_url,
        )


class Paging(BaseModel, Generic[ItemT]):
    """cursor 기반 페이지 ({items, next})"""
    items: List[ItemT]
    next: Optional[str]


class LikedTrackItem(BaseModel):
    track: Optional[SpotifyTrackObject]


class RecentlyPlayedItem(BaseModel):
    track: Optional[SpotifyTrackObject]
    played_at: Optional[str] = None


class AlbumTracks(BaseModel):
    items: List[Optional[SpotifyTrackObject]]


class SavedAlbum(SpotifyAlbumRef):
    tracks: AlbumTracks


class SavedAlbumItem(BaseModel):
    album: SavedAlbum

    def to_raw_tracks(self) -> List[RawTrack]:
        tracks = []
        for track in self.album.tracks.items:
            raw = track.to_raw_track(album=self.album) if track else None
            if raw:
                tracks.append(raw)
        return tracks


class AudioFeaturesResponse(BaseModel):
    audio_features: List[Optional[AudioFeatures]]


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    refresh_token: Optional[str] = None


class MeResponse(BaseModel):
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None
