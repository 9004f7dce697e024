"""
Sphere Payload - 트랙 목록 + audio feature → 최종 구면 데이터

RawTrack → (없으면 합성) AudioFeatures → 표준화 행렬 → PCA 3D
→ 단위 구면 배치 → 의미 축
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel

from FETCH.models import AudioFeatures, RawTrack

from .axes import compute_semantic_axes
from .constants import DEFAULT_AXES
from .layout import ensure_visible_positions
from .matrix import build_feature_matrix
from .pca import run_pca3
from .synth import synthesize_features

logger = logging.getLogger(__name__)

Vector3 = Tuple[float, float, float]


class SphereTrack(RawTrack):
    features: AudioFeatures
    vector: List[float]
    position: Vector3


class SemanticAxes(BaseModel):
    energy: Vector3
    tempo: Vector3
    valence: Vector3
    acousticness: Vector3


class SpherePayload(BaseModel):
    generated_at: str
    track_count: int
    tracks: List[SphereTrack]
    semantic_axes: SemanticAxes


def resolve_features(
    raw_tracks: Sequence[RawTrack],
    feature_map: Mapping[str, AudioFeatures],
) -> List[AudioFeatures]:
    """트랙 순서대로 feature 매칭. 없으면 합성."""
    resolved = []
    synthesized = 0
    for track in raw_tracks:
        features = feature_map.get(track.id)
        if features is None:
            features = synthesize_features(track)
            synthesized += 1
        resolved.append(features)

    if synthesized:
        logger.info(f"[Sphere] synthesized features for {synthesized}/{len(raw_tracks)} tracks")
    return resolved


def create_sphere_payload(
    raw_tracks: Sequence[RawTrack],
    feature_map: Mapping[str, AudioFeatures],
    rng: Optional[np.random.Generator] = None,
) -> SpherePayload:
    generated_at = datetime.now(timezone.utc).isoformat()

    if not raw_tracks:
        return SpherePayload(
            generated_at=generated_at,
            track_count=0,
            tracks=[],
            semantic_axes=SemanticAxes(**DEFAULT_AXES),
        )

    features = resolve_features(raw_tracks, feature_map)
    matrix = build_feature_matrix(features)
    positions = ensure_visible_positions(run_pca3(matrix, rng=rng))
    axes: Dict[str, Vector3] = compute_semantic_axes(positions, features)

    tracks = [
        SphereTrack(
            **track.model_dump(),
            features=track_features,
            vector=[float(v) for v in matrix[index]],
            position=tuple(float(v) for v in positions[index]),
        )
        for index, (track, track_features) in enumerate(zip(raw_tracks, features))
    ]

    return SpherePayload(
        generated_at=generated_at,
        track_count=len(tracks),
        tracks=tracks,
        semantic_axes=SemanticAxes(**axes),
    )
