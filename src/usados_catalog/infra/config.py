from __future__ import annotations

import os

DEFAULT_API_URL = "http://localhost:3001"
DEFAULT_API_TIMEOUT_MS = 15_000
DEFAULT_LIST_PAGE_SIZE = 8

ENVIRONMENTS = ("development", "preview", "production")


def environment() -> str:
    value = (os.getenv("APP_ENV") or "").strip().lower()
    return value if value in ENVIRONMENTS else "development"


def api_base_url() -> str:
    url = (os.getenv("API_URL") or "").strip() or DEFAULT_API_URL
    return url.rstrip("/")


def api_timeout_seconds() -> float:
    """API_TIMEOUT is expressed in milliseconds; invalid values fall back to 15s."""
    raw = os.getenv("API_TIMEOUT")
    try:
        timeout_ms = int(raw) if raw else DEFAULT_API_TIMEOUT_MS
    except ValueError:
        timeout_ms = DEFAULT_API_TIMEOUT_MS
    if timeout_ms <= 0:
        timeout_ms = DEFAULT_API_TIMEOUT_MS
    return timeout_ms / 1000


def list_page_size() -> int:
    raw = os.getenv("LIST_PAGE_SIZE")
    try:
        size = int(raw) if raw else DEFAULT_LIST_PAGE_SIZE
    except ValueError:
        size = DEFAULT_LIST_PAGE_SIZE
    return size if size > 0 else DEFAULT_LIST_PAGE_SIZE


def site_url() -> str:
    """
    Public base URL used for canonical links.

    Production has no fallback: a missing SITE_URL would publish wrong
    canonical URLs, so it fails loudly instead.
    """
    url = (os.getenv("SITE_URL") or "").strip()
    if url:
        return url.rstrip("/")

    if environment() == "production":
        raise RuntimeError("SITE_URL environment variable is not set")

    port = os.getenv("PORT") or "3000"
    return f"http://localhost:{port}"
