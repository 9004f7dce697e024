"""
데이터베이스 연결 모듈
세션 저장소(SQLite 기본, DATABASE_URL로 교체 가능) 연결 설정
"""
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """SQLAlchemy 엔진 생성 (SQLite면 파일 디렉토리를 먼저 만든다)"""
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args=connect_args,
        echo=False,
    )


@lru_cache()
def get_engine() -> Engine:
    """설정의 DATABASE_URL 엔진 (첫 사용 시 생성)"""
    return build_engine(get_settings().database_url)


@lru_cache()
def get_session_factory() -> sessionmaker:
    """세션 팩토리"""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def init_db(bind: Optional[Engine] = None) -> None:
    """테이블 생성 (없을 때만)"""
    # 모델 등록을 위해 import
    from SYNC import store  # noqa: F401

    Base.metadata.create_all(bind=bind or get_engine())


def test_connection() -> bool:
    """DB 연결 테스트"""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"[DB] 연결 실패: {e}")
        return False
