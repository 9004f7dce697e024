"""
PCA Embedding Engine - 공분산 + power iteration + deflation

빠른 근사용 3차원 PCA:
1. 표준화된 컬럼의 8x8 표본 공분산 (n-1)
2. power iteration(60회)으로 최대 고유벡터 → Rayleigh quotient로 고유값
3. eigenvalue * v v^T 만큼 deflate 후 2, 3번째 성분 반복
4. 각 행을 3개 성분에 내적 → 3D 좌표

초기 벡터가 랜덤이므로 고유값 간격이 작으면 실행마다 결과가 조금씩 다를 수 있다.
재현이 필요하면 시드를 준 numpy Generator를 넘긴다.
"""
from typing import List, Optional, Tuple

import numpy as np

from .constants import EMBEDDING_DIMS, POWER_INIT_EPS, POWER_ITERATIONS


def normalize(vector: np.ndarray) -> np.ndarray:
    magnitude = float(np.linalg.norm(vector))
    if magnitude == 0:
        return np.zeros_like(vector, dtype=float)
    return vector / magnitude


def covariance_matrix(matrix: np.ndarray) -> np.ndarray:
    """표본 공분산. 컬럼이 이미 z-score(평균 0)라서 중심화는 생략."""
    rows, cols = matrix.shape
    if rows <= 1:
        return np.zeros((cols, cols))
    return (matrix.T @ matrix) / (rows - 1)


def power_iteration(
    matrix: np.ndarray,
    iterations: int = POWER_ITERATIONS,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """최대 고유값에 해당하는 단위 고유벡터"""
    if rng is None:
        rng = np.random.default_rng()

    vector = normalize(rng.random(matrix.shape[0]) + POWER_INIT_EPS)
    for _ in range(iterations):
        vector = normalize(matrix @ vector)
    return vector


def deflate(matrix: np.ndarray, eigenvector: np.ndarray, eigenvalue: float) -> np.ndarray:
    return matrix - eigenvalue * np.outer(eigenvector, eigenvector)


def principal_components(
    matrix: np.ndarray,
    n_components: int = EMBEDDING_DIMS,
    iterations: int = POWER_ITERATIONS,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[np.ndarray, List[float]]:
    """
    Returns:
        (components (n_components, n_features), eigenvalues)
    """
    if rng is None:
        rng = np.random.default_rng()

    working = covariance_matrix(matrix)
    components = []
    eigenvalues = []

    for _ in range(n_components):
        eigenvector = power_iteration(working, iterations, rng)
        eigenvalue = float(eigenvector @ working @ eigenvector)
        components.append(eigenvector)
        eigenvalues.append(eigenvalue)
        working = deflate(working, eigenvector, eigenvalue)

    return np.vstack(components), eigenvalues


def run_pca3(
    matrix: np.ndarray,
    rng: Optional[np.random.Generator] = None,
    iterations: int = POWER_ITERATIONS,
) -> np.ndarray:
    """(n_tracks, 8) 표준화 행렬 → (n_tracks, 3) 원시 좌표 (정규화 전)"""
    matrix = np.asarray(matrix, dtype=float)
    if matrix.shape[0] == 0:
        return np.zeros((0, EMBEDDING_DIMS))

    components, _ = principal_components(matrix, EMBEDDING_DIMS, iterations, rng)
    return matrix @ components.T
