import logging
import os
from datetime import datetime
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

from app import db as app_db
from app import models as _models  # noqa: F401 - register SQLAlchemy models before create_all
from app.config import get_settings
from app.routers import api, assessments

try:
    from hls_compliance import get_runtime_version
except ModuleNotFoundError:  # pragma: no cover - compatibility for non-editable local runs
    from src.hls_compliance import get_runtime_version

logger = logging.getLogger(__name__)


def _sqlite_path_from_url(database_url: str) -> Path | None:
    url = (database_url or "").strip()
    if not url.startswith("sqlite:///"):
        return None
    return Path(url[len("sqlite:///") :])


def _backup_sqlite_files(db_path: Path, *, reason: str) -> None:
    ts = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    backup_dir = get_settings().runtime_dir / "db_recovery"
    backup_dir.mkdir(parents=True, exist_ok=True)
    for p in (Path(str(db_path) + "-journal"), Path(str(db_path) + "-wal"), db_path):
        if p.exists():
            try:
                os.replace(str(p), str(backup_dir / f"{p.name}.{reason}.{ts}"))
            except OSError:
                logger.exception("Failed to backup sqlite file: %s", p)


def _initialize_db_schema(database_url: str) -> None:
    active_engine = app_db.configure_database(database_url)
    app_db.Base.metadata.create_all(bind=active_engine)
    app_db.ensure_runtime_schema()


def _init_db_with_recovery(settings) -> None:
    """
    Create tables + apply runtime schema, moving a corrupted SQLite file aside once.
    """
    try:
        _initialize_db_schema(settings.database_url)
        return
    except OperationalError as e:
        db_path = _sqlite_path_from_url(settings.database_url)
        if "disk i/o error" not in str(e).lower() or not db_path:
            raise
        logger.warning("SQLite disk I/O error detected. Backing up DB and creating a fresh database: %s", db_path)
        _backup_sqlite_files(db_path, reason="db_recreate")
        _initialize_db_schema(settings.database_url)


def create_app() -> FastAPI:
    # Respect runtime env overrides (tests, temporary runs).
    get_settings.cache_clear()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins or ["http://127.0.0.1", "http://localhost"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _init_db_with_recovery(settings)

    app.include_router(assessments.router)
    app.include_router(api.router)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.get("/api/health")
    def api_health():
        return {"status": "ok", "version": get_runtime_version()}

    return app


app = create_app()
