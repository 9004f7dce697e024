"""
Feature Matrix Builder - 컬럼별 이상치 clamp + z-score

컬럼(피처)마다 독립적으로:
1. 원본 값 추출 (tempo는 /220)
2. 2~98 percentile(선형 보간)로 clamp
3. 표본 평균/표준편차(n-1) 계산 → (x - mean) / sd
   sd가 0이면 1로 대체 → 값이 모두 같은 컬럼은 전부 0
"""
import math
from typing import Sequence

import numpy as np

from FETCH.models import AudioFeatures

from .constants import FEATURE_KEYS, PERCENTILE_HIGH, PERCENTILE_LOW, TEMPO_SCALE


def feature_column(features: Sequence[AudioFeatures], key: str) -> np.ndarray:
    if key == "tempo":
        return np.array([f.tempo / TEMPO_SCALE for f in features], dtype=float)
    return np.array([getattr(f, key) for f in features], dtype=float)


def clamp_to_percentiles(
    values: np.ndarray,
    low_q: float = PERCENTILE_LOW,
    high_q: float = PERCENTILE_HIGH,
) -> np.ndarray:
    if values.size == 0:
        return values
    # numpy 기본 method="linear" == (n-1)*p 위치 선형 보간
    low, high = np.quantile(values, [low_q, high_q])
    return np.clip(values, low, high)


def standardize_column(
    values: np.ndarray,
    low_q: float = PERCENTILE_LOW,
    high_q: float = PERCENTILE_HIGH,
) -> np.ndarray:
    clamped = clamp_to_percentiles(values, low_q, high_q)
    if clamped.size == 0:
        return clamped
    if clamped.min() == clamped.max():
        # 분산 0 → 전부 0 (부동소수 평균 오차로 생기는 잔여값 방지)
        return np.zeros_like(clamped)

    mean = clamped.mean()
    variance = float(((clamped - mean) ** 2).sum()) / max(clamped.size - 1, 1)
    sd = math.sqrt(variance)
    if sd == 0:
        sd = 1.0
    return (clamped - mean) / sd


def build_feature_matrix(
    features: Sequence[AudioFeatures],
    low_q: float = PERCENTILE_LOW,
    high_q: float = PERCENTILE_HIGH,
) -> np.ndarray:
    """
    AudioFeatures 리스트 → (n_tracks, 8) 표준화 행렬.
    행 순서는 입력 순서와 동일.
    """
    if not features:
        return np.zeros((0, len(FEATURE_KEYS)))

    columns = [
        standardize_column(feature_column(features, key), low_q, high_q)
        for key in FEATURE_KEYS
    ]
    return np.column_stack(columns)
