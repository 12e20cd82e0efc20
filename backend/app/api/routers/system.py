from __future__ import annotations

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.config import settings
from app.db import get_conn
from app.version import APP_VERSION


router = APIRouter()

_READY_CACHE_TTL_SECONDS = 30.0
_ready_cache: dict[str, object] = {
    "ts": 0.0,
    "ok": None,
    "payload": None,
}


def _database_backend_label(database_url: str) -> str:
    url = (database_url or "").strip().lower()
    if url.startswith("sqlite:///"):
        return "sqlite"
    return "unknown"


def _cache_set(ok: bool, payload: dict[str, object]) -> None:
    _ready_cache["ts"] = time.time()
    _ready_cache["ok"] = ok
    _ready_cache["payload"] = payload


def _cache_get() -> dict[str, object] | None:
    now = time.time()
    ts = float(_ready_cache.get("ts") or 0.0)
    if now - ts > _READY_CACHE_TTL_SECONDS:
        return None
    payload = _ready_cache.get("payload")
    if isinstance(payload, dict):
        return payload
    return None


def reset_ready_cache() -> None:
    _ready_cache.update({"ts": 0.0, "ok": None, "payload": None})


@router.get("/")
def root() -> dict[str, str]:
    return {"service": "prdforge-backend", "status": "running", "version": APP_VERSION}


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "environment": settings.app_env}


@router.get("/ready", response_model=None)
def ready() -> JSONResponse:
    cached = _cache_get()
    if cached is not None:
        ok = bool(_ready_cache.get("ok"))
        return JSONResponse(status_code=200 if ok else 503, content=cached)

    checks: dict[str, object] = {}
    payload: dict[str, object] = {
        "status": "ready",
        "environment": settings.app_env,
        "checks": checks,
    }

    try:
        with get_conn() as conn:
            conn.execute("SELECT 1 FROM projects LIMIT 1").fetchone()
        checks["db"] = {
            "ok": True,
            "backend": _database_backend_label(settings.database_url),
        }
    except Exception as exc:
        payload["status"] = "not_ready"
        checks["db"] = {
            "ok": False,
            "backend": _database_backend_label(settings.database_url),
            "error": str(exc),
        }
        _cache_set(False, payload)
        return JSONResponse(status_code=503, content=payload)

    _cache_set(True, payload)
    return JSONResponse(status_code=200, content=payload)
