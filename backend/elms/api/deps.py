from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from elms.core.config import Settings, get_settings
from elms.db.session import SessionLocal
from elms.services.conflict_service import ConflictService
from elms.services.sql_repository import SqlSessionRepository


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> SqlSessionRepository:
    return SqlSessionRepository(db)


def get_conflict_service(
    repository: SqlSessionRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> ConflictService:
    return ConflictService(repository, settings)
