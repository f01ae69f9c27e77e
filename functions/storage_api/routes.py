"""
HTTP routes for the storage API.
"""

from __future__ import annotations

import logging
import platform
from typing import Any, Callable, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from storage_api.config import (
    DatabaseConfig,
    Settings,
    get_database_config,
    get_settings,
)
from storage_api.db import StorageDb, ping_storage
from storage_api.dependencies import get_storage_db
from storage_api.intents import RequestIntent, classify_request, extract_kv, parse_body
from storage_api.schemas import (
    DiagnosticInfo,
    DiagnosticResponse,
    ErrorDetails,
    ErrorResponse,
    OkResponse,
    StorageReadResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_METHODS = ("GET", "POST")
NO_STORE = {"Cache-Control": "no-store"}
NOT_CONFIGURED_MESSAGE = (
    "Postgres is not configured (missing database environment variables)."
)


def _json(
    status_code: int, content: Any, headers: Optional[dict] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={**NO_STORE, **(headers or {})},
    )


def _error_code(exc: BaseException) -> Optional[str]:
    # DBAPI errors carry the driver exception; psycopg2 exposes the SQLSTATE as pgcode.
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(exc, "code", None)
    return str(code) if code else None


def server_error_response(exc: BaseException) -> JSONResponse:
    body = ErrorResponse(
        error=str(exc) or "server_error",
        details=ErrorDetails(code=_error_code(exc), name=type(exc).__name__),
    )
    return _json(500, body.model_dump(exclude_none=True))


def diagnostic_payload(config: DatabaseConfig) -> DiagnosticResponse:
    return DiagnosticResponse(
        diag=DiagnosticInfo(
            has_database_config=config.has_database_config,
            has_postgres_url=config.has_postgres_url,
            has_postgres_prisma_url=config.has_postgres_prisma_url,
            has_postgres_url_non_pooling=config.has_postgres_url_non_pooling,
            has_postgres_host=config.has_postgres_host,
            has_database_url=config.has_database_url,
            python=platform.python_version(),
        )
    )


def handle_storage_request(
    *,
    method: str,
    raw_url: str,
    body: Any,
    config: DatabaseConfig,
    settings: Settings,
    db_provider: Callable[[], Optional[StorageDb]],
) -> JSONResponse:
    payload = parse_body(body)
    intent = classify_request(method, raw_url, payload, config.has_database_config)

    if intent is RequestIntent.DIAGNOSTIC:
        return _json(200, diagnostic_payload(config).model_dump(by_alias=True))

    if intent is RequestIntent.UNCONFIGURED:
        error = ErrorResponse(error="pg_not_configured", message=NOT_CONFIGURED_MESSAGE)
        return _json(503, error.model_dump(exclude_none=True))

    if intent is RequestIntent.METHOD_NOT_ALLOWED:
        error = ErrorResponse(error="method_not_allowed")
        return _json(
            405,
            error.model_dump(exclude_none=True),
            headers={"Allow": ", ".join(ALLOWED_METHODS)},
        )

    db = db_provider()
    if db is None:
        raise RuntimeError("Database is configured but no storage client is available")
    db.ensure_schema()

    if intent is RequestIntent.GET:
        kv = db.get_value(settings.storage_key) or {}
        return _json(200, StorageReadResponse(kv=kv).model_dump())

    if intent is RequestIntent.PING:
        ok = ping_storage(db, settings.ping_key)
        if not ok:
            logger.warning("Ping stamp mismatch on key %s", settings.ping_key)
        return _json(200 if ok else 500, OkResponse(ok=ok).model_dump())

    kv = extract_kv(payload)
    db.upsert_value(settings.storage_key, kv)
    logger.debug("Stored %d top-level keys under %s", len(kv), settings.storage_key)
    return _json(200, OkResponse(ok=True).model_dump())


async def storage(request: Request) -> JSONResponse:
    """
    Shared key/value storage.

    GET returns the stored document, POST {kv} replaces it and POST {ping}
    runs a write-then-read round trip. ?diag=1 reports configuration flags
    without touching the database. Registered without a method filter so
    every verb gets the same JSON answer.
    """
    try:
        settings = get_settings()
        config = get_database_config()
        body = await request.body()
        return await run_in_threadpool(
            handle_storage_request,
            method=request.method,
            raw_url=str(request.url),
            body=body,
            config=config,
            settings=settings,
            db_provider=get_storage_db,
        )
    except Exception as exc:
        logger.exception("Storage request failed")
        return server_error_response(exc)


router.add_route("/storage", storage, name="storage")
