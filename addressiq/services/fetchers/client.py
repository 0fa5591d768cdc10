from __future__ import annotations

import json
import threading
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from addressiq.core.errors import Cancelled, UpstreamError
from addressiq.core.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "addressiq-backend/1.0"
DEFAULT_TIMEOUT_SEC = 30.0

T = TypeVar("T")


@dataclass(frozen=True)
class FetchContext:
    """Per-request cancellation flag and HTTP timeout handed to every adapter."""

    cancel: threading.Event = field(default_factory=threading.Event)
    timeout: float = DEFAULT_TIMEOUT_SEC

    def check(self) -> None:
        if self.cancel.is_set():
            raise Cancelled()

    def sleep(self, seconds: float) -> None:
        if self.cancel.wait(seconds):
            raise Cancelled()


@dataclass(frozen=True)
class AdapterParams:
    lat: float
    lon: float
    bag_id: str = ""
    neighborhood_code: str = ""
    municipality_code: str = ""
    postcode: str = ""
    house_number: str = ""
    radius: int = 0


def get_json(
    ctx: FetchContext,
    source: str,
    url: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> Any:
    if params:
        url = f"{url}?{urllib.parse.urlencode(params)}"
    req = Request(url, headers=_headers(headers), method="GET")
    return _send(ctx, source, req)


def post_form(
    ctx: FetchContext,
    source: str,
    url: str,
    form: dict[str, str],
    headers: dict[str, str] | None = None,
) -> Any:
    merged = {"Content-Type": "application/x-www-form-urlencoded; charset=UTF-8"}
    merged.update(headers or {})
    data = urllib.parse.urlencode(form).encode("utf-8")
    req = Request(url, data=data, headers=_headers(merged), method="POST")
    return _send(ctx, source, req)


def post_json(
    ctx: FetchContext,
    source: str,
    url: str,
    payload: Any,
    headers: dict[str, str] | None = None,
) -> Any:
    merged = {"Content-Type": "application/json"}
    merged.update(headers or {})
    data = json.dumps(payload).encode("utf-8")
    req = Request(url, data=data, headers=_headers(merged), method="POST")
    return _send(ctx, source, req)


def retry_with_backoff(
    ctx: FetchContext,
    source: str,
    call: Callable[[], T],
    attempts: int = 3,
    initial_delay: float = 1.0,
) -> T:
    """Runs ``call`` until it succeeds, doubling the delay between attempts.

    Cancellation is never retried; the last UpstreamError is re-raised once
    attempts are exhausted.
    """
    delay = initial_delay
    last_error: UpstreamError | None = None
    for attempt in range(1, attempts + 1):
        ctx.check()
        try:
            return call()
        except UpstreamError as exc:
            last_error = exc
            logger.debug("[%s] attempt %d/%d failed: %s", source, attempt, attempts, exc)
        if attempt < attempts:
            ctx.sleep(delay)
            delay *= 2
    assert last_error is not None
    raise last_error


def bearer(token: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def to_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_int(value: Any) -> int | None:
    parsed = to_float(value)
    return int(parsed) if parsed is not None else None


def _headers(extra: dict[str, str] | None) -> dict[str, str]:
    headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
    headers.update(extra or {})
    return headers


def _send(ctx: FetchContext, source: str, req: Request) -> Any:
    ctx.check()
    logger.debug("[%s] %s %s", source, req.get_method(), req.full_url)
    try:
        with urlopen(req, timeout=ctx.timeout) as resp:
            body = resp.read().decode("utf-8")
    except HTTPError as exc:
        raise UpstreamError(source, f"{source} returned status {exc.code}", status=exc.code) from exc
    except (URLError, TimeoutError, OSError) as exc:
        ctx.check()
        raise UpstreamError(source, f"{source} request failed: {exc}") from exc
    ctx.check()
    try:
        return json.loads(body) if body else None
    except json.JSONDecodeError as exc:
        raise UpstreamError(source, f"failed to decode {source} response: {exc}") from exc


def require_url(url: str | None, source: str) -> str:
    if not url:
        raise UpstreamError(source, f"{source} API URL not configured")
    return url.rstrip("/")
