from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import Settings, get_settings


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def engine_options(settings: Settings) -> dict[str, object]:
    """Keyword arguments for ``create_engine`` under the given settings."""
    options: dict[str, object] = {"pool_pre_ping": True}
    if is_sqlite(settings.database_url):
        # Requests run in a threadpool; a locked file waits this long before
        # surfacing as OperationalError.
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.store_timeout_secs,
        }
    return options


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def build_engine(settings: Settings) -> Engine:
    eng = create_engine(settings.database_url, **engine_options(settings))
    if is_sqlite(settings.database_url):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def store_reachable(session: Session) -> bool:
    try:
        session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        session.rollback()
        return False
    return True


engine = build_engine(get_settings())
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
