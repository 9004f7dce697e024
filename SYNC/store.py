"""
Session Store - 세션별 토큰 / 프로필 / 구면 데이터 / 진행 상황 저장

세션 하나당 한 행. 각 항목은 pydantic 모델을 JSON 문자열로 저장한다.
구면 데이터는 sync마다 통째로 교체 (부분 갱신 없음).
"""
import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func

from database import Base, build_engine
from FETCH.models import SpotifyProfile, SpotifyTokenSet
from SPHERE.payload import SpherePayload

from .progress import SyncProgress

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SphereSession(Base):
    """세션 테이블"""
    __tablename__ = "sphere_sessions"

    session_id = Column(String(64), primary_key=True)
    tokens = Column(Text)
    profile = Column(Text)
    sphere = Column(Text)
    sync_progress = Column(Text)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class SessionData(BaseModel):
    tokens: Optional[SpotifyTokenSet] = None
    profile: Optional[SpotifyProfile] = None
    sphere: Optional[SpherePayload] = None
    sync_progress: Optional[SyncProgress] = None


def _load(model: Type[ModelT], raw: Optional[str], session_id: str) -> Optional[ModelT]:
    if not raw:
        return None
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"[SessionStore] {session_id}: stored {model.__name__} unreadable, ignored ({e.error_count()} errors)")
        return None


class SessionStore:
    """
    SQLAlchemy 세션 팩토리를 받아 동작.
    기본값은 database.get_session_factory() (설정의 DATABASE_URL).
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        if session_factory is None:
            from database import get_session_factory, init_db
            init_db()
            session_factory = get_session_factory()
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SessionStore":
        engine = build_engine(database_url)
        Base.metadata.create_all(bind=engine)
        return cls(sessionmaker(autocommit=False, autoflush=False, bind=engine))

    def get_session_data(self, session_id: str) -> SessionData:
        db = self._session_factory()
        try:
            row = db.get(SphereSession, session_id)
            if row is None:
                return SessionData()
            return SessionData(
                tokens=_load(SpotifyTokenSet, row.tokens, session_id),
                profile=_load(SpotifyProfile, row.profile, session_id),
                sphere=_load(SpherePayload, row.sphere, session_id),
                sync_progress=_load(SyncProgress, row.sync_progress, session_id),
            )
        finally:
            db.close()

    def _write(self, session_id: str, column: str, value: Optional[BaseModel]) -> None:
        db = self._session_factory()
        try:
            row = db.get(SphereSession, session_id)
            if row is None:
                row = SphereSession(session_id=session_id)
                db.add(row)
            setattr(row, column, value.model_dump_json() if value is not None else None)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def set_session_tokens(self, session_id: str, tokens: SpotifyTokenSet) -> None:
        self._write(session_id, "tokens", tokens)

    def set_session_profile(self, session_id: str, profile: SpotifyProfile) -> None:
        self._write(session_id, "profile", profile)

    def set_session_sphere(self, session_id: str, sphere: SpherePayload) -> None:
        self._write(session_id, "sphere", sphere)
        logger.info(f"[SessionStore] {session_id}: sphere saved ({sphere.track_count} tracks)")

    def set_session_sync_progress(self, session_id: str, progress: SyncProgress) -> None:
        self._write(session_id, "sync_progress", progress)

    def clear_session(self, session_id: str) -> None:
        db = self._session_factory()
        try:
            row = db.get(SphereSession, session_id)
            if row is not None:
                db.delete(row)
                db.commit()
        finally:
            db.close()
