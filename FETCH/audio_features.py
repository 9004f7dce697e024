"""
Audio Feature Batch Fetcher

id를 100개씩 나눠 /audio-features를 순차 호출하고 하나의 dict로 합친다.
- 개별 트랙 누락(null)은 오류가 아님 → dict에서 빠질 뿐
- 403(앱에 audio-features 권한 없음) → 지금까지 모은 결과만 반환
  (빠진 트랙은 SPHERE.synth가 채움)
"""
import logging
from typing import Dict, Iterator, List, Sequence, TypeVar

from .client import SpotifyClient
from .constants import AUDIO_FEATURES_BATCH
from .errors import SpotifyPermissionError
from .models import AudioFeatures
from .schemas import AudioFeaturesResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunks(items: Sequence[T], size: int) -> Iterator[List[T]]:
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


async def fetch_audio_features(
    client: SpotifyClient,
    ids: Sequence[str],
    access_token: str,
    batch_size: int = AUDIO_FEATURES_BATCH,
) -> Dict[str, AudioFeatures]:
    """
    트랙 id 목록 → {id: AudioFeatures}

    Raises:
        403 이외의 Spotify 오류는 그대로 전파
    """
    by_id: Dict[str, AudioFeatures] = {}

    for group in chunks(ids, batch_size):
        try:
            page = await client.get_model(
                "/audio-features",
                access_token,
                AudioFeaturesResponse,
                params={"ids": ",".join(group)},
            )
        except SpotifyPermissionError:
            logger.warning(
                f"[AudioFeatures] 403 → fallback features for the rest "
                f"({len(by_id)}/{len(ids)} fetched)"
            )
            return by_id

        for feature in page.audio_features:
            if feature is None or not feature.id:
                continue
            by_id[feature.id] = feature

    logger.info(f"[AudioFeatures] {len(by_id)}/{len(ids)} tracks have audio features")
    return by_id
