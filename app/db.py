from pathlib import Path
from urllib.parse import unquote

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import get_settings

Base = declarative_base()
SessionLocal = sessionmaker(autoflush=False, autocommit=False, future=True)
engine: Engine | None = None


def _ensure_sqlite_parent(database_url: str) -> None:
    if not database_url.startswith("sqlite:///"):
        return
    raw = unquote(database_url[len("sqlite:///") :])
    if not raw or raw == ":memory:":
        return
    try:
        Path(raw).parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # If the parent dir can't be created, SQLite will fail later with a clearer error.
        pass


def configure_database(database_url: str) -> Engine:
    """Point the module-level engine and SessionLocal at ``database_url``."""
    global engine
    _ensure_sqlite_parent(database_url)
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    if engine is not None:
        engine.dispose()
    engine = create_engine(database_url, connect_args=connect_args, future=True)
    SessionLocal.configure(bind=engine)
    return engine


def ensure_runtime_schema() -> None:
    """Apply lightweight runtime schema safety for SQLite deployments."""
    if engine is None or engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "CREATE UNIQUE INDEX IF NOT EXISTS ux_assessment_answers_module_code "
            "ON assessment_answers (assessment_id, module_key, code)"
        )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


configure_database(get_settings().database_url)
