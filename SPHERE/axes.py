"""
Semantic Axis Regression

피처(energy, tempo, valence, acousticness)마다 원본 값과 x/y/z 좌표 각각의
Pearson 상관계수를 구해 3-벡터로 묶고 단위 길이로 정규화한다.
(결합 회귀가 아님. 화면 표시용 힌트일 뿐 배치에는 영향 없음)
"""
import math
from typing import Dict, Sequence, Tuple

import numpy as np

from FETCH.models import AudioFeatures

from .constants import SEMANTIC_KEYS
from .pca import normalize

Vector3 = Tuple[float, float, float]


def pearson(a: np.ndarray, b: np.ndarray) -> float:
    """분모가 0이면 0"""
    if a.size == 0:
        return 0.0
    da = a - a.mean()
    db = b - b.mean()
    denom = math.sqrt(float((da * da).sum()) * float((db * db).sum()))
    if denom == 0:
        return 0.0
    return float((da * db).sum()) / denom


def feature_correlations(positions: np.ndarray, values: Sequence[float]) -> Vector3:
    positions = np.asarray(positions, dtype=float).reshape(-1, 3)
    values = np.asarray(values, dtype=float)
    correlations = np.array([pearson(positions[:, axis], values) for axis in range(3)])
    x, y, z = normalize(correlations)
    return float(x), float(y), float(z)


def compute_semantic_axes(positions: np.ndarray, features: Sequence[AudioFeatures]) -> Dict[str, Vector3]:
    return {
        key: feature_correlations(positions, [getattr(f, key) for f in features])
        for key in SEMANTIC_KEYS
    }
