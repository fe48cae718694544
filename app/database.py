from typing import Iterator

from fastapi import Depends, HTTPException, Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.logging_config import get_logger

logger = get_logger("database")

Base = declarative_base()


class Database:
    """Engine + session factory owned by the application for its whole lifetime."""

    def __init__(self, url: str, **engine_kwargs):
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+psycopg2://", 1)
        if url.startswith("sqlite"):
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
            if ":memory:" in url or url.rstrip("/") == "sqlite:":
                engine_kwargs.setdefault("poolclass", StaticPool)
        else:
            engine_kwargs.setdefault("pool_pre_ping", True)

        self.url = url
        self.engine = create_engine(url, **engine_kwargs)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def create_all(self) -> None:
        # Register tables on Base before creating them.
        import app.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")


def get_database(request: Request) -> Database:
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return database


def get_db(database: Database = Depends(get_database)) -> Iterator[Session]:
    db = database.session()
    try:
        yield db
    finally:
        db.close()
