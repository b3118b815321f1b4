from __future__ import annotations

import argparse
import os
import socket
import tempfile
from pathlib import Path

import uvicorn

from hls_compliance import get_runtime_version

APP_IMPORT_PATH = "app.main:app"
HOST = "127.0.0.1"
PREFERRED_PORT = 56461


def _can_bind_localhost(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((HOST, int(port)))
            return True
        except OSError:
            return False


def _find_port(preferred_port: int = PREFERRED_PORT, max_attempts: int = 50) -> int:
    if _can_bind_localhost(preferred_port):
        return preferred_port

    for port in range(preferred_port + 1, preferred_port + 1 + max_attempts):
        if _can_bind_localhost(port):
            return int(port)

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((HOST, 0))
        return int(sock.getsockname()[1])


def _resolve_runtime_dir() -> Path:
    configured = os.getenv("RUNTIME_DIR", "").strip()
    candidates = [Path(configured).expanduser()] if configured else []
    candidates.append(Path.home() / ".hls_compliance" / "data")
    candidates.append(Path(tempfile.gettempdir()) / "HlsCompliance" / "data")

    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
            return candidate
        except OSError:
            continue
    raise RuntimeError("Unable to create a writable runtime data directory.")


def _configure_runtime_env() -> Path:
    runtime_dir = _resolve_runtime_dir()
    os.environ.setdefault("RUNTIME_DIR", str(runtime_dir))
    db_path = runtime_dir / "hls_compliance.db"
    os.environ.setdefault("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    return runtime_dir


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="hls-compliance-server", description="Serve the assessment HTTP API.")
    parser.add_argument("--port", type=int, default=0, help=f"Port to bind (default: {PREFERRED_PORT} or next free)")
    args = parser.parse_args(argv)

    data_dir = _configure_runtime_env()
    from app.main import app as fastapi_app

    port = args.port or _find_port(PREFERRED_PORT)
    print(f"Version: {get_runtime_version()}", flush=True)
    print(f"API: http://{HOST}:{port}/api", flush=True)
    print(f"Data dir: {data_dir.resolve()}", flush=True)
    print(f"App import path: {APP_IMPORT_PATH}", flush=True)

    uvicorn.run(
        fastapi_app,
        host=HOST,
        port=port,
        reload=False,
        access_log=False,
        log_level="warning",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
