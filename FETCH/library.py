"""
Library Aggregator - 좋아요 / 저장한 앨범 / 최근 재생 트랙 수집

세 소스를 동시에 페이지 단위로 가져온 뒤 트랙 id 기준으로 중복 제거.
- liked   : /me/tracks                 (최대 limit 곡)
- saved   : /me/albums                 (최대 limit/5 앨범, 앨범마다 여러 곡)
- recent  : /me/player/recently-played (최대 limit 곡)

403(scope 권한 없음)인 소스는 빈 결과로 대체하고 나머지로 계속 진행.
병합 순서는 liked → saved → recent 이므로 같은 id면 최근 재생 메타데이터가 남는다.
"""
import asyncio
import logging
import math
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel

from .client import SpotifyClient
from .constants import LIKED_PAGE_MAX, RECENT_PAGE_MAX, SAVED_ALBUM_PAGE_MAX
from .errors import SpotifyPermissionError
from .models import RawTrack
from .schemas import LikedTrackItem, Paging, RecentlyPlayedItem, SavedAlbumItem

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", bound=BaseModel)


class FetchProgressObserver(Protocol):
    """페이지를 받을 때마다 지금까지 받은 항목 수를 전달받는다."""

    async def on_progress(self, fetched: int) -> None:
        ...


class NullProgressObserver:
    async def on_progress(self, fetched: int) -> None:
        return None


async def notify_progress(observer: FetchProgressObserver, fetched: int) -> None:
    """진행 상황 알림은 best-effort: 실패해도 수집은 계속한다."""
    try:
        await observer.on_progress(fetched)
    except Exception as e:
        logger.warning(f"[Library] progress observer failed: {e}")


async def collect_paged(
    client: SpotifyClient,
    initial_path: str,
    access_token: str,
    max_items: int,
    item_model: Type[ItemT],
    on_page: Optional[Callable[[int], Awaitable[None]]] = None,
    abort_event: Optional[asyncio.Event] = None,
) -> List[ItemT]:
    """next cursor를 따라가며 max_items까지 수집"""
    path_or_url: Optional[str] = initial_path
    items: List[ItemT] = []

    while path_or_url and len(items) < max_items:
        if abort_event is not None and abort_event.is_set():
            logger.info(f"[Library] abort requested, stop paging {initial_path}")
            break

        page = await client.get_model(path_or_url, access_token, Paging[item_model])
        items.extend(page.items)
        if on_page is not None:
            await on_page(len(items))
        path_or_url = page.next

    return items[:max_items]


async def collect_paged_safe(
    client: SpotifyClient,
    initial_path: str,
    access_token: str,
    max_items: int,
    item_model: Type[ItemT],
    on_page: Optional[Callable[[int], Awaitable[None]]] = None,
    abort_event: Optional[asyncio.Event] = None,
) -> List[ItemT]:
    """403이면 빈 리스트 (해당 scope 권한 없음)"""
    try:
        return await collect_paged(
            client, initial_path, access_token, max_items, item_model, on_page, abort_event
        )
    except SpotifyPermissionError:
        logger.warning(f"[Library] {initial_path} → 403, source skipped")
        return []


async def _nothing() -> list:
    return []


async def fetch_user_tracks(
    client: SpotifyClient,
    access_token: str,
    limit: int,
    include_liked_songs: bool = True,
    include_saved_albums: bool = True,
    include_recently_played: bool = True,
    observer: Optional[FetchProgressObserver] = None,
    abort_event: Optional[asyncio.Event] = None,
) -> List[RawTrack]:
    """
    사용자 라이브러리 트랙 수집.

    Args:
        client: SpotifyClient
        access_token: Bearer 토큰
        limit: 최종 트랙 수 상한
        include_*: 소스별 on/off
        observer: 진행 상황 수신자 (없으면 no-op)
        abort_event: set되면 새 페이지 요청을 더 보내지 않음

    Returns:
        id 기준 중복 제거된 RawTrack 리스트 (삽입 순서 유지, limit개 이하)
    """
    observer = observer or NullProgressObserver()
    counts: Dict[str, int] = {"liked": 0, "saved": 0, "recent": 0}

    def page_callback(source: str) -> Callable[[int], Awaitable[None]]:
        async def on_page(count: int) -> None:
            counts[source] = count
            await notify_progress(observer, sum(counts.values()))
        return on_page

    liked_page = max(1, min(LIKED_PAGE_MAX, limit))
    recent_page = max(1, min(RECENT_PAGE_MAX, limit))
    saved_page = max(1, min(SAVED_ALBUM_PAGE_MAX, math.ceil(limit / 5)))

    liked_task = collect_paged_safe(
        client, f"/me/tracks?limit={liked_page}", access_token, limit,
        LikedTrackItem, page_callback("liked"), abort_event,
    ) if include_liked_songs else _nothing()
    saved_task = collect_paged_safe(
        client, f"/me/albums?limit={saved_page}", access_token, max(1, limit // 5),
        SavedAlbumItem, page_callback("saved"), abort_event,
    ) if include_saved_albums else _nothing()
    recent_task = collect_paged_safe(
        client, f"/me/player/recently-played?limit={recent_page}", access_token, limit,
        RecentlyPlayedItem, page_callback("recent"), abort_event,
    ) if include_recently_played else _nothing()

    liked, saved_albums, recent = await asyncio.gather(liked_task, saved_task, recent_task)

    track_map: Dict[str, RawTrack] = {}

    for item in liked:
        raw = item.track.to_raw_track() if item.track else None
        if raw:
            track_map[raw.id] = raw

    for album_item in saved_albums:
        for raw in album_item.to_raw_tracks():
            track_map[raw.id] = raw

    for item in recent:
        raw = item.track.to_raw_track() if item.track else None
        if raw:
            track_map[raw.id] = raw

    logger.info(
        f"[Library] liked={len(liked)}, saved_albums={len(saved_albums)}, "
        f"recent={len(recent)} → {len(track_map)} unique tracks (limit {limit})"
    )
    return list(track_map.values())[:limit]
