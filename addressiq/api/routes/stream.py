"""Server-sent event search stream.

The blocking aggregate runs in a worker thread and feeds a ``ProgressChannel``;
this generator drains the channel into ``update`` events and ends with a
``data`` event and a ``complete`` event carrying the header HTML.
"""

import asyncio
import hmac
import json
import queue
import threading
import time
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from addressiq.api.deps import get_aggregator, get_settings
from addressiq.core.config import Settings
from addressiq.core.errors import AddressNotFound, Cancelled
from addressiq.core.logging import get_logger
from addressiq.schemas.property import PropertyRecord
from addressiq.services.aggregator import PropertyAggregator
from addressiq.services.progress import ChannelClosed, ProgressChannel
from addressiq.services.search_results import build_search_response, header_html

logger = get_logger(__name__)

KEEPALIVE_INTERVAL_SEC = 2.0
CHANNEL_POLL_SEC = 0.5
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

router = APIRouter()


def sse_event(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def is_admin(settings: Settings, header_secret: str | None, query_secret: str | None) -> bool:
    if not settings.admin_secret:
        return False
    supplied = header_secret or query_secret or ""
    return hmac.compare_digest(supplied.encode("utf-8"), settings.admin_secret.encode("utf-8"))


def parse_api_keys(raw: str | None) -> dict[str, str] | None:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("ignoring unparseable apiKeys parameter: %s", exc)
        return None
    if not isinstance(parsed, dict):
        logger.warning("ignoring apiKeys parameter that is not a JSON object")
        return None
    return {str(name): value for name, value in parsed.items() if isinstance(value, str) and value}


@router.get("/stream")
async def search_stream(
    request: Request,
    postcode: str | None = Query(default=None),
    house_number: str | None = Query(default=None, alias="houseNumber"),
    bypass_cache: str | None = Query(default=None, alias="bypassCache"),
    api_keys: str | None = Query(default=None, alias="apiKeys"),
    admin_secret: str | None = Query(default=None, alias="adminSecret"),
    settings: Settings = Depends(get_settings),
    aggregator: PropertyAggregator = Depends(get_aggregator),
) -> StreamingResponse:
    bypass = (bypass_cache or "").strip().lower() in ("true", "1")
    if bypass and not is_admin(settings, request.headers.get("X-Admin-Secret"), admin_secret):
        logger.warning("cache bypass requested without a valid admin secret, using cache")
        bypass = False

    events = _event_stream(
        request,
        aggregator,
        settings,
        (postcode or "").strip(),
        (house_number or "").strip(),
        bypass,
        parse_api_keys(api_keys),
    )
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)


async def _event_stream(
    request: Request,
    aggregator: PropertyAggregator,
    settings: Settings,
    postcode: str,
    house_number: str,
    bypass: bool,
    api_keys: dict[str, str] | None,
) -> AsyncIterator[str]:
    if not postcode or not house_number:
        yield sse_event("error", {"message": "Missing postcode or houseNumber"})
        return

    if not bypass:
        cached = await run_in_threadpool(aggregator.cached, postcode, house_number)
        if cached is not None:
            logger.info("stream cache hit for %s %s", postcode, house_number)
            for chunk in _final_events(aggregator, cached, postcode, house_number):
                yield chunk
            return

    channel = ProgressChannel(settings.progress_buffer_size)
    cancel = threading.Event()
    task = asyncio.ensure_future(
        run_in_threadpool(
            aggregator.aggregate,
            postcode,
            house_number,
            bypass_cache=bypass,
            progress=channel,
            api_keys=api_keys,
            cancel=cancel,
        )
    )
    task.add_done_callback(_consume_result)

    try:
        yield sse_event("start", {"message": "Starting search..."})
        last_write = time.monotonic()
        while True:
            if await request.is_disconnected():
                logger.info("client disconnected from stream for %s %s", postcode, house_number)
                cancel.set()
                return
            try:
                event = await run_in_threadpool(channel.get, CHANNEL_POLL_SEC)
            except queue.Empty:
                if time.monotonic() - last_write >= KEEPALIVE_INTERVAL_SEC:
                    yield ": keepalive\n\n"
                    last_write = time.monotonic()
                continue
            except ChannelClosed:
                break
            yield sse_event("update", event.model_dump(by_alias=True, mode="json"))
            last_write = time.monotonic()

        try:
            record = await task
        except Cancelled:
            return
        except AddressNotFound as exc:
            logger.info("stream search failed for %s %s: %s", postcode, house_number, exc)
            yield sse_event("error", {"message": str(exc)})
            return
        except Exception:
            logger.exception("stream search failed for %s %s", postcode, house_number)
            yield sse_event("error", {"message": "failed to aggregate property data"})
            return

        for chunk in _final_events(aggregator, record, postcode, house_number):
            yield chunk
    finally:
        if not task.done():
            cancel.set()


def _final_events(
    aggregator: PropertyAggregator, record: PropertyRecord, postcode: str, house_number: str
) -> list[str]:
    response = build_search_response(record, aggregator.registry)
    return [
        sse_event("data", response.model_dump(mode="json")),
        sse_event("complete", header_html(record, postcode, house_number)),
    ]


def _consume_result(task: "asyncio.Future[Any]") -> None:
    # Marks the outcome as retrieved for aggregates whose stream went away
    if not task.cancelled():
        task.exception()
