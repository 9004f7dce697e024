"""
SPHERE Constants - 임베딩 피처 순서 및 레이아웃 임계값

레이아웃 임계값(0.3, 0.22)은 실험적으로 정한 값. 근거가 따로 없으므로
바꾸지 말고 필요하면 함수 인자로 덮어쓴다.
"""

# 피처 벡터 순서 (FeatureVector index와 1:1)
FEATURE_KEYS = (
    "energy",
    "tempo",
    "valence",
    "danceability",
    "acousticness",
    "instrumentalness",
    "speechiness",
    "liveness",
)

# 의미 축을 계산할 피처
SEMANTIC_KEYS = ("energy", "tempo", "valence", "acousticness")

# tempo를 0~1 근처로 맞추기 위한 나눗셈 값
TEMPO_SCALE = 220.0

# 이상치 clamp 구간 (선형 보간 percentile)
PERCENTILE_LOW = 0.02
PERCENTILE_HIGH = 0.98

# PCA
EMBEDDING_DIMS = 3
POWER_ITERATIONS = 60
POWER_INIT_EPS = 1e-4

# 레이아웃
ZERO_MAGNITUDE = 1e-6
COLLAPSED_RATIO = 0.3      # 원점에 몰린 트랙 비율이 이 값을 넘으면 전체 fallback
MIN_SPREAD = 0.22          # centroid 기준 평균 거리가 이 값 미만이면 전체 fallback

# 트랙이 없을 때 쓰는 기본 축
DEFAULT_AXES = {
    "energy": (0.0, 1.0, 0.0),
    "tempo": (1.0, 0.0, 0.0),
    "valence": (0.0, 0.0, 1.0),
    "acousticness": (-1.0, 0.0, 0.0),
}
