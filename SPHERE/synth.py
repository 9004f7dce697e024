"""
Fallback Feature Synthesizer

audio feature를 받지 못한 트랙용 결정적(deterministic) 가짜 피처.
같은 트랙(id, 이름, 아티스트)이면 항상 같은 값 → 동기화할 때마다 위치가 안정적.

방식:
1. "id:name:artist1,artist2" 문자열을 32-bit FNV-1a로 해시
2. 해시 + 서로 다른 홀수 offset → sin 기반 소수부 생성기로 0~1 값
3. 각 값을 피처의 자연 범위로 변환 (tempo 70~180, loudness -60~0 ...)
"""
import math

from FETCH.models import AudioFeatures, RawTrack

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619


def hash_string(text: str) -> int:
    """32-bit FNV-1a (UTF-16 code unit 단위)"""
    h = FNV_OFFSET_BASIS
    data = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


def seeded_unit(seed: float) -> float:
    """seed → [0, 1)"""
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def track_seed(track: RawTrack) -> int:
    return hash_string(f"{track.id}:{track.name}:{','.join(track.artists)}")


def synthesize_features(track: RawTrack) -> AudioFeatures:
    base = track_seed(track)

    return AudioFeatures(
        id=track.id,
        danceability=seeded_unit(base + 11),
        energy=seeded_unit(base + 23),
        key=math.floor(seeded_unit(base + 37) * 12),
        loudness=-60 + seeded_unit(base + 53) * 60,
        mode=1 if seeded_unit(base + 71) > 0.5 else 0,
        speechiness=seeded_unit(base + 89),
        acousticness=seeded_unit(base + 101),
        instrumentalness=seeded_unit(base + 131),
        liveness=seeded_unit(base + 149),
        valence=seeded_unit(base + 167),
        tempo=70 + seeded_unit(base + 191) * 110,
        time_signature=4,
    )
