"""
SPHERE - 트랙 임베딩 / 구면 배치

흐름:
1. synth: audio feature 없는 트랙에 결정적 가짜 피처
2. matrix: 컬럼별 percentile clamp + z-score
3. pca: 공분산 + power iteration + deflation → 3D
4. layout: 단위 구면 정규화, 뭉치거나 무너진 배치는 Fibonacci sphere로 대체
5. axes: 피처별 방향 벡터 (Pearson 상관)
"""
from .payload import SpherePayload, SphereTrack, SemanticAxes, create_sphere_payload
from .synth import synthesize_features
from .matrix import build_feature_matrix
from .pca import run_pca3
from .layout import ensure_visible_positions, fibonacci_sphere_point
from .axes import compute_semantic_axes
