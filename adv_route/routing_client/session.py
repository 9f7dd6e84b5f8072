"""Shared HTTP session for GraphHopper and Overpass calls."""

from __future__ import annotations

import threading
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import (
    HTTP_POOL_CONNECTIONS,
    HTTP_POOL_MAXSIZE,
    HTTP_RETRY_TOTAL,
    HTTP_USER_AGENT,
)

__all__ = ["build_retry", "create_session", "get_default_session"]

# Only server faults are retried here; 429 belongs to the routing gate.
RETRY_STATUSES = (500, 502, 503, 504)


def build_retry(total: int = HTTP_RETRY_TOTAL) -> Retry:
    return Retry(
        total=total,
        backoff_factor=1.0,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET", "POST"}),
        respect_retry_after_header=False,
        raise_on_status=False,
    )


def create_session(
    *,
    pool_connections: int = HTTP_POOL_CONNECTIONS,
    pool_maxsize: int = HTTP_POOL_MAXSIZE,
    retry_total: int = HTTP_RETRY_TOTAL,
) -> requests.Session:
    """Return a pooled session that retries 5xx responses with backoff."""

    adapter = HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=build_retry(retry_total),
    )
    session = requests.Session()
    for prefix in ("https://", "http://"):
        session.mount(prefix, adapter)
    # Overpass asks clients to identify themselves.
    session.headers["User-Agent"] = HTTP_USER_AGENT
    session.headers["Accept"] = "application/json"
    return session


_default_session: Optional[requests.Session] = None
_default_lock = threading.Lock()


def get_default_session() -> requests.Session:
    """Return the process-wide session, creating it on first use."""

    global _default_session
    with _default_lock:
        if _default_session is None:
            _default_session = create_session()
        return _default_session
