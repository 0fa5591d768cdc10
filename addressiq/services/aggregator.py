"""Concurrent fan-out over the adapter registry.

One ``aggregate`` call resolves the address, runs every selected adapter on a
shared thread pool, streams progress events and returns a sealed
``PropertyRecord``. Adapter failures land in ``record.errors``; only a resolver
failure or cancellation aborts the call.
"""

from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable

from pydantic import BaseModel

from addressiq.core.config import Settings
from addressiq.core.data_sources import ADAPTERS, RESOLVER_SOURCE, AdapterSpec, credential_fields
from addressiq.core.errors import Cancelled
from addressiq.core.logging import get_logger
from addressiq.schemas.property import ProgressEvent, PropertyRecord, ResolvedAddress
from addressiq.schemas.sources import AISummary
from addressiq.services.cache import AGGREGATED_TTL, Cache, CacheKey
from addressiq.services.fetchers.client import AdapterParams, FetchContext
from addressiq.services.fetchers.summary import SOURCE as SUMMARY_SOURCE
from addressiq.services.fetchers.summary import summarize_location
from addressiq.services.progress import ProgressChannel
from addressiq.services.resolver import Resolver, resolve_address
from addressiq.utils.time import utc_now

logger = get_logger(__name__)

Summarizer = Callable[[FetchContext, Settings, PropertyRecord], AISummary]

CACHE_SOURCE = "Cache"
POLL_INTERVAL_SEC = 0.1
SUMMARY_SLOT = "ai_summary"
SUMMARY_CREDENTIAL = "gemini_api_key"

PENDING = "pending"
RUNNING = "running"
SUCCESS = "success"
FAILURE = "failure"
SKIPPED_NO_CREDENTIAL = "skipped-no-credential"
SKIPPED_NO_KEY = "skipped-no-key"


def dump_data(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, list):
        return [dump_data(item) for item in value]
    return value


class _RecordBuilder:
    """Lock-protected accumulator for one aggregate."""

    def __init__(self, resolved: ResolvedAddress, total: int) -> None:
        self._lock = threading.Lock()
        self._slots: dict[str, Any] = {}
        self._data_sources: list[str] = [RESOLVER_SOURCE]
        self._errors: dict[str, str] = {}
        self._completed = 0
        self.total = total
        self.resolved = resolved

    def succeed(self, name: str, slot: str, value: Any) -> int:
        with self._lock:
            self._slots[slot] = value
            if name not in self._data_sources:
                self._data_sources.append(name)
            self._errors.pop(name, None)
            return self._finish()

    def fail(self, name: str, message: str) -> int:
        with self._lock:
            if name not in self._data_sources:
                self._errors[name] = message
            return self._finish()

    def skip(self) -> int:
        with self._lock:
            return self._finish()

    def progress(self) -> int:
        with self._lock:
            return self._completed

    def _finish(self) -> int:
        self._completed += 1
        return self._completed

    def seal(self) -> PropertyRecord:
        resolved = self.resolved
        with self._lock:
            return PropertyRecord(
                address=resolved.address,
                coordinates=(resolved.lon, resolved.lat),
                bag_id=resolved.bag_id,
                postcode=resolved.postcode,
                house_number=resolved.house_number,
                municipality_code=resolved.municipality_code,
                neighborhood_code=resolved.neighborhood_code,
                geojson=resolved.geojson,
                aggregated_at=utc_now(),
                data_sources=list(self._data_sources),
                errors=dict(self._errors),
                **self._slots,
            )


class _Flight:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.record: PropertyRecord | None = None
        self.error: BaseException | None = None


class PropertyAggregator:
    def __init__(
        self,
        settings: Settings,
        cache: Cache | None = None,
        registry: tuple[AdapterSpec, ...] = ADAPTERS,
        resolver: Resolver = resolve_address,
        summarizer: Summarizer = summarize_location,
        max_workers: int | None = None,
        poll_interval: float = POLL_INTERVAL_SEC,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.registry = registry
        self.resolver = resolver
        self.summarizer = summarizer
        self.poll_interval = poll_interval
        self._credential_fields = {**credential_fields(registry), SUMMARY_SOURCE.lower(): SUMMARY_CREDENTIAL}
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.max_workers, thread_name_prefix="adapter"
        )
        self._flights: dict[str, _Flight] = {}
        self._flights_lock = threading.Lock()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def cached(self, postcode: str, house_number: str) -> PropertyRecord | None:
        if self.cache is None:
            return None
        payload = self.cache.get(CacheKey.aggregated(postcode, house_number))
        if payload is None:
            return None
        try:
            return PropertyRecord.decode(payload)
        except ValueError as exc:
            logger.warning("discarding unreadable cache entry for %s %s: %s", postcode, house_number, exc)
            return None

    def aggregate(
        self,
        postcode: str,
        house_number: str,
        *,
        bypass_cache: bool = False,
        progress: ProgressChannel | None = None,
        api_keys: dict[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> PropertyRecord:
        """Builds the record for one address.

        Raises AddressNotFound when the resolver fails and Cancelled when
        ``cancel`` is set before the record is sealed. The progress channel is
        closed on every exit path.
        """
        cancel = cancel or threading.Event()
        try:
            if not bypass_cache:
                record = self.cached(postcode, house_number)
                if record is not None:
                    logger.info("cache hit for %s %s", postcode, house_number)
                    self._publish(progress, CACHE_SOURCE, SUCCESS, completed=1, total=1)
                    return record

            if api_keys:
                return self._build(postcode, house_number, progress, api_keys, cancel)
            return self._single_flight(postcode, house_number, progress, cancel)
        finally:
            if progress is not None:
                progress.close()

    def _single_flight(
        self,
        postcode: str,
        house_number: str,
        progress: ProgressChannel | None,
        cancel: threading.Event,
    ) -> PropertyRecord:
        key = CacheKey.aggregated(postcode, house_number)
        while True:
            with self._flights_lock:
                flight = self._flights.get(key)
                leader = flight is None
                if leader:
                    flight = self._flights[key] = _Flight()

            if leader:
                try:
                    flight.record = self._build(postcode, house_number, progress, None, cancel)
                    return flight.record
                except BaseException as exc:
                    flight.error = exc
                    raise
                finally:
                    with self._flights_lock:
                        self._flights.pop(key, None)
                    flight.done.set()

            while not flight.done.wait(self.poll_interval):
                if cancel.is_set():
                    raise Cancelled()
            if flight.record is not None:
                self._publish(progress, CACHE_SOURCE, SUCCESS, completed=1, total=1)
                return flight.record
            if isinstance(flight.error, Cancelled):
                # The leader's client went away; this caller takes over.
                continue
            raise flight.error

    def _effective_settings(self, api_keys: dict[str, str] | None) -> Settings:
        if not api_keys:
            return self.settings
        overrides: dict[str, str] = {}
        known_fields = set(self._credential_fields.values())
        for name, value in api_keys.items():
            # Keys may name the adapter ("SkyGeo") or its setting ("SKYGEO_API_KEY")
            key = str(name).strip().lower()
            field = self._credential_fields.get(key) or (key if key in known_fields else None)
            if field and isinstance(value, str) and value.strip():
                overrides[field] = value.strip()
        return self.settings.with_overrides(overrides)

    def _build(
        self,
        postcode: str,
        house_number: str,
        progress: ProgressChannel | None,
        api_keys: dict[str, str] | None,
        cancel: threading.Event,
    ) -> PropertyRecord:
        settings = self._effective_settings(api_keys)
        ctx = FetchContext(cancel=cancel, timeout=settings.http_timeout_sec)
        resolved = self.resolver(ctx, settings, postcode, house_number)
        ctx.check()

        summarize = bool(getattr(settings, SUMMARY_CREDENTIAL, None))
        # One terminal event per registry entry (skips included), plus the summary stage
        builder = _RecordBuilder(resolved, total=len(self.registry) + int(summarize))
        scheduled: list[tuple[AdapterSpec, AdapterParams]] = []
        for spec in self.registry:
            if spec.credential and not getattr(settings, spec.credential, None):
                completed = builder.skip()
                self._publish(progress, spec.name, SKIPPED_NO_CREDENTIAL, completed=completed, total=builder.total)
                continue
            params = spec.binder(resolved)
            if params is None:
                completed = builder.skip()
                self._publish(progress, spec.name, SKIPPED_NO_KEY, completed=completed, total=builder.total)
                continue
            scheduled.append((spec, params))

        futures: set[Future] = set()
        for spec, params in scheduled:
            self._publish(progress, spec.name, PENDING, completed=builder.progress(), total=builder.total)
            futures.add(self._executor.submit(self._run, spec, ctx, settings, params, builder, progress))

        self._supervise(futures, cancel)
        if cancel.is_set():
            raise Cancelled()

        if summarize:
            self._summarize(builder, ctx, settings, progress)

        record = builder.seal()
        logger.info(
            "aggregated %s %s: %d sources, %d errors",
            resolved.postcode,
            resolved.house_number,
            len(record.data_sources),
            len(record.errors),
        )
        if self.cache is not None:
            self.cache.set(CacheKey.aggregated(postcode, house_number), record.encode(), AGGREGATED_TTL)
        return record

    def _supervise(self, futures: set[Future], cancel: threading.Event) -> None:
        pending = futures
        while pending:
            if cancel.is_set():
                for future in pending:
                    future.cancel()
                raise Cancelled()
            _, pending = wait(pending, timeout=self.poll_interval, return_when=FIRST_COMPLETED)

    def _run(
        self,
        spec: AdapterSpec,
        ctx: FetchContext,
        settings: Settings,
        params: AdapterParams,
        builder: _RecordBuilder,
        progress: ProgressChannel | None,
    ) -> None:
        if ctx.cancel.is_set():
            return
        self._publish(progress, spec.name, RUNNING, completed=builder.progress(), total=builder.total)
        try:
            value = spec.fetch(ctx, settings, params)
        except Cancelled:
            return
        except Exception as exc:
            if ctx.cancel.is_set():
                return
            logger.info("[%s] failed: %s", spec.name, exc)
            completed = builder.fail(spec.name, str(exc))
            self._publish(progress, spec.name, FAILURE, error=str(exc), completed=completed, total=builder.total)
            return
        if ctx.cancel.is_set():
            return
        completed = builder.succeed(spec.name, spec.slot, value)
        self._publish(
            progress, spec.name, SUCCESS, data=dump_data(value), completed=completed, total=builder.total
        )

    def _summarize(
        self,
        builder: _RecordBuilder,
        ctx: FetchContext,
        settings: Settings,
        progress: ProgressChannel | None,
    ) -> None:
        """Runs the location summary over the merged record; failures land in ``errors``."""
        ctx.check()
        self._publish(progress, SUMMARY_SOURCE, RUNNING, completed=builder.progress(), total=builder.total)
        try:
            summary = self.summarizer(ctx, settings, builder.seal())
        except Cancelled:
            raise
        except Exception as exc:
            ctx.check()
            logger.info("[%s] failed: %s", SUMMARY_SOURCE, exc)
            completed = builder.fail(SUMMARY_SOURCE, str(exc))
            self._publish(
                progress, SUMMARY_SOURCE, FAILURE, error=str(exc), completed=completed, total=builder.total
            )
            return
        ctx.check()
        completed = builder.succeed(SUMMARY_SOURCE, SUMMARY_SLOT, summary)
        self._publish(
            progress, SUMMARY_SOURCE, SUCCESS, data=dump_data(summary), completed=completed, total=builder.total
        )

    @staticmethod
    def _publish(
        progress: ProgressChannel | None,
        source: str,
        status: str,
        *,
        data: Any = None,
        error: str | None = None,
        completed: int = 0,
        total: int = 0,
    ) -> None:
        if progress is None:
            return
        progress.publish(
            ProgressEvent(
                source=source,
                status=status,
                data=data,
                error=error,
                timestamp=utc_now(),
                completed=completed,
                total=total,
            )
        )
