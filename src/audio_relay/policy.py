from __future__ import annotations

"""Boundary policy: inbound API key and origin allowlist."""

import hmac
import logging
from typing import Iterable, Optional
from urllib.parse import urlsplit

from .errors import ConfigurationError, Unauthorized

logger = logging.getLogger(__name__)

API_KEY_HEADER = "apikey"


def check_api_key(expected: Optional[str], provided: Optional[str]) -> None:
    if not expected:
        logger.error("policy.api_key.not_configured")
        raise ConfigurationError("Internal server error")
    if not provided:
        raise Unauthorized("API_KEY not provided")
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise Unauthorized("Invalid API_KEY")


def origin_from_referer(referer: Optional[str]) -> str:
    if not referer:
        return ""
    parts = urlsplit(referer.strip())
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}"


def request_origin(origin: Optional[str], referer: Optional[str]) -> str:
    """Use Origin; fall back to the scheme and host of Referer."""

    value = (origin or "").strip()
    if value:
        return value
    return origin_from_referer(referer)


def origin_allowed(origin: str, allowed_origins: Iterable[str]) -> bool:
    """An empty origin (no browser context) is allowed; otherwise it must be listed or ``*``."""

    allowed = [item.strip().rstrip("/") for item in allowed_origins if item and item.strip()]
    if not allowed or not origin:
        return True
    candidate = origin.rstrip("/")
    return any(item == "*" or item == candidate for item in allowed)
