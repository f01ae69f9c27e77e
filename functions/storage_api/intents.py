"""
Request classification for the storage endpoint.

Every request is mapped to exactly one RequestIntent before any database
work happens. Precedence: diagnostic > unconfigured > method > body shape.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

DIAG_VALUES = ("1", "true")


class RequestIntent(StrEnum):
    DIAGNOSTIC = "diagnostic"
    UNCONFIGURED = "unconfigured"
    GET = "get"
    PING = "ping"
    SET = "set"
    METHOD_NOT_ALLOWED = "method_not_allowed"


def is_diagnostic_request(raw_url: Optional[str]) -> bool:
    """Return True when the query string asks for ?diag=1 or ?diag=true."""
    if not raw_url:
        return False
    try:
        query = urlsplit(str(raw_url)).query
        values = parse_qs(query, keep_blank_values=True).get("diag")
    except ValueError:
        return "diag=1" in str(raw_url)
    return bool(values) and values[0] in DIAG_VALUES


def parse_body(body: Any) -> dict:
    """
    Normalize a request body into a mapping.

    Accepts an already-parsed mapping or raw JSON text (str/bytes). Empty,
    malformed or non-object payloads become an empty dict.
    """
    if body is None:
        return {}
    if isinstance(body, Mapping):
        return dict(body)
    if isinstance(body, (bytes, bytearray)):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return {}
    if isinstance(body, str):
        if not body.strip():
            return {}
        try:
            body = json.loads(body)
        except ValueError:
            return {}
    return dict(body) if isinstance(body, Mapping) else {}


def is_truthy(value: Any) -> bool:
    """JavaScript truthiness: only null, false, 0, NaN and "" are falsy."""
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, (int, float)):
        return value == value and value != 0
    if isinstance(value, str):
        return value != ""
    return True


def extract_kv(body: Mapping[str, Any]) -> dict:
    kv = body.get("kv")
    return dict(kv) if isinstance(kv, Mapping) else {}


def classify_request(
    method: str,
    raw_url: Optional[str],
    body: Mapping[str, Any],
    has_database_config: bool,
) -> RequestIntent:
    if is_diagnostic_request(raw_url):
        return RequestIntent.DIAGNOSTIC
    if not has_database_config:
        return RequestIntent.UNCONFIGURED

    method = (method or "").upper()
    if method == "GET":
        return RequestIntent.GET
    if method == "POST":
        return RequestIntent.PING if is_truthy(body.get("ping")) else RequestIntent.SET
    return RequestIntent.METHOD_NOT_ALLOWED
