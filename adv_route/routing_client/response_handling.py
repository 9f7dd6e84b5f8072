"""Shared HTTP response helpers for routing and discovery services."""

from __future__ import annotations

import logging
import time
from email.utils import parsedate_to_datetime
from typing import Any, Iterator, Mapping, Optional

import requests

__all__ = ["extract_error", "parse_retry_after", "safe_json"]

LOGGER = logging.getLogger(__name__)

# Plain-text error bodies (HTML error pages, Overpass remarks) are cut here.
MAX_ERROR_TEXT = 300

# Delay headers in order of preference. GraphHopper sends X-RateLimit-Reset
# as seconds until the credit window resets.
RETRY_HEADERS = ("Retry-After", "X-RateLimit-Reset")


def safe_json(resp: requests.Response) -> Optional[Any]:
    """Decoded JSON body, or None when the body is not JSON."""

    try:
        return resp.json()
    except ValueError as exc:
        # requests' JSONDecodeError subclasses ValueError.
        LOGGER.debug("Non-JSON body from %s: %s", getattr(resp, "url", "?"), exc)
        return None


def extract_error(resp: Optional[requests.Response]) -> Optional[str]:
    """Compact error description: JSON message plus distinct hints, or text."""

    if resp is None:
        return None
    data = safe_json(resp)
    if data is None:
        return _plain_text(resp)
    if not isinstance(data, dict):
        return None
    parts = list(_messages(data))
    return " | ".join(parts) if parts else None


def parse_retry_after(
    headers: Mapping[str, Any] | None, *, now: float | None = None
) -> Optional[float]:
    """Server requested delay in seconds (numeric or HTTP-date), if any."""

    if not headers:
        return None
    for name in RETRY_HEADERS:
        raw = headers.get(name)
        if raw is None:
            continue
        delay = _delay_seconds(str(raw).strip(), now)
        if delay is not None:
            return delay
        LOGGER.debug("Ignoring unparseable %s header: %r", name, raw)
    return None


def _delay_seconds(value: str, now: float | None) -> Optional[float]:
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    current = time.time() if now is None else now
    return max(0.0, when.timestamp() - current)


def _plain_text(resp: requests.Response) -> Optional[str]:
    text = getattr(resp, "text", "")
    if not isinstance(text, str) or not text.strip():
        return None
    text = text.strip()
    if len(text) > MAX_ERROR_TEXT:
        return text[: MAX_ERROR_TEXT - 3] + "..."
    return text


def _messages(data: Mapping[str, Any]) -> Iterator[str]:
    """GraphHopper uses message + hints[]; Overpass uses remark."""

    message = data.get("message") or data.get("remark")
    if message:
        yield str(message)
    hints = data.get("hints")
    if not isinstance(hints, list):
        return
    for hint in hints:
        detail = hint.get("message") if isinstance(hint, dict) else None
        if detail and detail != message:
            yield str(detail)
