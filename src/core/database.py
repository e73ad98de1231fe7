from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from ..config import get_settings

settings = get_settings()


def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # Attempts and answers rely on ON DELETE CASCADE
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        sqlite_engine = create_engine(
            database_url,
            echo=settings.debug,
            connect_args={"check_same_thread": False}
        )
        event.listen(sqlite_engine, "connect", enable_sqlite_foreign_keys)
        return sqlite_engine

    return create_engine(
        database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=settings.debug
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    # Import models to register them with Base
    from ..models import user, quiz, quiz_attempt, quiz_answer  # noqa: F401
    Base.metadata.create_all(bind=engine)


def drop_tables():
    Base.metadata.drop_all(bind=engine)
