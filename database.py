from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _create_engine(database_url: str) -> Engine:
    connect_args: dict[str, object] = {}
    if _is_sqlite(database_url):
        # FastAPI runs sync routes in a threadpool.
        connect_args["check_same_thread"] = False
    eng = create_engine(database_url, connect_args=connect_args)
    if _is_sqlite(database_url):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    # ON DELETE CASCADE on transactions and budgets needs foreign keys enabled.
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


engine = _create_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def init_db() -> None:
    """Create missing tables; migrations stay the source of truth for upgrades."""
    import models  # noqa: F401

    Base.metadata.create_all(engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

