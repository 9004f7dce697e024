"""
Music Sphere API
Spotify 라이브러리를 3D 구면에 배치하는 서버

- SYNC: 라이브러리 동기화, 진행 상황, 세션
- FETCH: Spotify Web API (rate limit + 재시도)
- SPHERE: audio feature → PCA 3D → 구면 배치 + 의미 축
"""
from fastapi import FastAPI
import logging

# 로거 설정
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import os
import sys

# 현재 디렉토리를 path에 추가
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import get_settings

settings = get_settings()


# ==================== Lifespan (시작/종료 이벤트) ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 시작/종료 시 실행"""
    # 시작 시
    print("=" * 60)
    print("[START] Music Sphere API")
    print("=" * 60)

    # 세션 DB 초기화 + 연결 테스트
    try:
        from database import init_db, test_connection
        init_db()
        if test_connection():
            print("[OK] Session database connected")
        else:
            print("[WARN] Session database connection failed - API continues")
    except Exception as e:
        print(f"[WARN] Database module load failed: {e}")

    # Spotify 자격 증명
    if settings.spotify_client_id and settings.spotify_client_secret:
        print("[OK] Spotify credentials configured")
    else:
        print("[WARN] SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET not set - token refresh will fail")

    if settings.embedding_seed is not None:
        print(f"[OK] Embedding seed: {settings.embedding_seed}")

    print("=" * 60)

    yield  # 앱 실행

    # 종료 시
    print("[STOP] Music Sphere API")


# ==================== FastAPI 앱 초기화 ====================

app = FastAPI(
    title="Music Sphere API",
    description="""
## Spotify 라이브러리 3D 시각화 API

### 흐름
1. `POST /api/library/sync` - 좋아요/저장 앨범/최근 재생 트랙 수집
2. audio feature 조회 (없으면 결정적 가짜 피처)
3. PCA 3D 임베딩 → 단위 구면 배치
4. `GET /api/sphere` - 트랙 좌표 + 의미 축(energy, tempo, valence, acousticness)
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== SYNC Router 등록 ====================

try:
    from SYNC.router import router as sync_router
    app.include_router(sync_router)
    print("[OK] SYNC Router registered")
except Exception as e:
    print(f"[WARN] SYNC Router failed: {e}")


# ==================== Root Endpoints ====================

@app.get("/")
async def root():
    """API 상태 및 엔드포인트 목록"""
    return {
        "status": "running",
        "service": "Music Sphere API",
        "version": "1.0.0",
        "environment": settings.environment,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "library": {
                "sync": "/api/library/sync",
                "progress": "/api/library/progress"
            },
            "sphere": "/api/sphere",
            "auth": {
                "status": "/api/auth/status",
                "logout": "/api/auth/logout"
            },
            "debug": "/api/debug/spotify"
        }
    }


@app.get("/health")
async def health_check():
    """전체 시스템 헬스 체크"""
    from database import test_connection
    from FETCH.rate_limit import shared_rate_limit

    limited, retry_after = shared_rate_limit.snapshot()
    return {
        "status": "healthy",
        "api": True,
        "database": test_connection(),
        "spotify_configured": bool(settings.spotify_client_id and settings.spotify_client_secret),
        "rate_limited": limited,
        "retry_after_ms": int(round(retry_after * 1000)),
    }


# ==================== 서버 실행 ====================

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.environment == "development"
    )
