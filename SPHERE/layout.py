"""
Sphere Layout Policy - PCA 좌표를 단위 구면 위로

1. 크기 < 1e-6 인 좌표 개수 확인. 30% 초과면 PCA 버리고 전체 Fibonacci sphere
2. 아니면 각 좌표 정규화 (원점 좌표만 개별적으로 Fibonacci 점으로 대체)
3. 정규화된 점들의 centroid 기준 평균 거리 < 0.22 (한 곳에 뭉침)
   → PCA 버리고 전체 Fibonacci sphere

어떤 입력이든 실패하지 않고, 모든 결과 점의 크기는 1.
"""
import logging
import math

import numpy as np

from .constants import COLLAPSED_RATIO, MIN_SPREAD, ZERO_MAGNITUDE

logger = logging.getLogger(__name__)

GOLDEN_ANGLE_FACTOR = math.pi * (1 + math.sqrt(5))


def fibonacci_sphere_point(index: int, total: int) -> np.ndarray:
    n = max(total, 1)
    i = index + 0.5
    phi = math.acos(1 - (2 * i) / n)
    theta = GOLDEN_ANGLE_FACTOR * i
    return np.array([
        math.cos(theta) * math.sin(phi),
        math.sin(theta) * math.sin(phi),
        math.cos(phi),
    ])


def fibonacci_sphere(total: int) -> np.ndarray:
    if total <= 0:
        return np.zeros((0, 3))
    return np.vstack([fibonacci_sphere_point(i, total) for i in range(total)])


def mean_spread(points: np.ndarray) -> float:
    """centroid에서 각 점까지 평균 거리"""
    if len(points) == 0:
        return 0.0
    centroid = points.mean(axis=0)
    return float(np.linalg.norm(points - centroid, axis=1).mean())


def ensure_visible_positions(
    raw_positions: np.ndarray,
    collapsed_ratio: float = COLLAPSED_RATIO,
    min_spread: float = MIN_SPREAD,
    zero_magnitude: float = ZERO_MAGNITUDE,
) -> np.ndarray:
    """
    Args:
        raw_positions: (n, 3) PCA 원시 좌표

    Returns:
        (n, 3) 단위 구면 좌표
    """
    raw_positions = np.asarray(raw_positions, dtype=float).reshape(-1, 3)
    total = len(raw_positions)
    if total == 0:
        return np.zeros((0, 3))

    magnitudes = np.linalg.norm(raw_positions, axis=1)
    collapsed = magnitudes < zero_magnitude
    zero_count = int(collapsed.sum())

    if zero_count > total * collapsed_ratio:
        logger.info(f"[Sphere] {zero_count}/{total} points collapsed → fibonacci layout")
        return fibonacci_sphere(total)

    normalized = np.empty_like(raw_positions)
    for index in range(total):
        if collapsed[index]:
            normalized[index] = fibonacci_sphere_point(index, total)
        else:
            normalized[index] = raw_positions[index] / magnitudes[index]

    spread = mean_spread(normalized)
    if spread < min_spread:
        logger.info(f"[Sphere] spread {spread:.3f} < {min_spread} → fibonacci layout")
        return fibonacci_sphere(total)

    return normalized
