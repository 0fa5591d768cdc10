import queue
import threading
import time

import pytest

from addressiq.core.data_sources import by_neighborhood
from addressiq.core.errors import AddressNotFound, Cancelled, UpstreamError
from addressiq.schemas.sources import AISummary, SafetyData, WeatherData
from addressiq.services.aggregator import PropertyAggregator
from addressiq.services.cache import CacheKey
from addressiq.services.progress import ChannelClosed, ProgressChannel
from addressiq.services.scoring_service import compute_scores

from conftest import UNKNOWN_POSTCODE, fake_resolver


def _events(channel: ProgressChannel):
    events = []
    while True:
        try:
            events.append(channel.get(timeout=1.0))
        except ChannelClosed:
            return events
        except queue.Empty:
            continue


def test_partial_failure_is_recorded_not_raised(aggregator):
    record = aggregator.aggregate("3541ED", "53")

    assert record.address == "Teststraat 53, 3541ED Utrecht"
    assert record.coordinates == (5.1214, 52.0907)
    assert record.data_sources[0] == "BAG"
    assert set(record.data_sources) == {"BAG", "KNMI Weather", "Flood Risk", "Altum Energy", "Kadaster"}
    assert record.errors == {"Noise Register": "upstream down"}
    assert not set(record.data_sources) & set(record.errors)
    assert record.weather.temperature == 12.5
    assert record.subsidence is None
    assert record.noise_pollution is None


def test_two_of_six_succeed(settings, memory_cache, adapters):
    registry = (
        adapters.spec("KNMI Weather", "weather", adapters.returning("KNMI Weather", WeatherData())),
        adapters.spec("CBS Safety", "safety", adapters.returning("CBS Safety", SafetyData(safety_score=80))),
        adapters.spec("Air Quality", "air_quality", adapters.failing("Air Quality")),
        adapters.spec("Noise Register", "noise_pollution", adapters.failing("Noise Register")),
        adapters.spec("WUR Soil", "soil_data", adapters.failing("WUR Soil")),
        adapters.spec("BRO", "bro_soil_map", adapters.failing("BRO")),
    )
    agg = PropertyAggregator(settings, cache=memory_cache, registry=registry, resolver=fake_resolver)
    try:
        record = agg.aggregate("3541ED", "53")
    finally:
        agg.close()

    assert len(record.data_sources) - 1 == 2
    assert len(record.errors) == 4
    scores = compute_scores(record)
    for value in (scores.esg_score, scores.profit_score, scores.opportunity_score, scores.overall_score):
        assert 0 <= value <= 100


def test_all_adapters_failing_still_returns_address(settings, memory_cache, adapters):
    registry = tuple(
        adapters.spec(name, slot, adapters.failing(name))
        for name, slot in [("KNMI Weather", "weather"), ("Flood Risk", "flood_risk"), ("BRO", "bro_soil_map")]
    )
    agg = PropertyAggregator(settings, cache=memory_cache, registry=registry, resolver=fake_resolver)
    try:
        record = agg.aggregate("3541ED", "53")
    finally:
        agg.close()

    assert record.address
    assert record.coordinates
    assert record.data_sources == ["BAG"]
    assert set(record.errors) == {"KNMI Weather", "Flood Risk", "BRO"}


def test_progress_events(aggregator, adapters):
    channel = ProgressChannel()
    aggregator.aggregate("3541ED", "53", progress=channel)
    events = _events(channel)

    by_source: dict[str, list[str]] = {}
    for event in events:
        by_source.setdefault(event.source, []).append(event.status)
        assert event.total == len(adapters.registry)

    assert by_source["SkyGeo"] == ["skipped-no-credential"]
    assert by_source["KNMI Weather"] == ["pending", "running", "success"]
    assert by_source["Noise Register"][-1] == "failure"
    assert adapters.calls["SkyGeo"] == 0

    terminal = [event for event in events if event.terminal]
    assert len(terminal) == len(adapters.registry)
    assert max(event.completed for event in terminal) == len(adapters.registry)
    success = next(e for e in events if e.source == "KNMI Weather" and e.status == "success")
    assert success.data["temperature"] == 12.5


def test_missing_key_parameter_is_skipped(settings, memory_cache, adapters):
    def no_neighbourhood(ctx, settings, postcode, house_number):
        return fake_resolver(ctx, settings, postcode, house_number).model_copy(update={"neighborhood_code": ""})

    registry = (
        adapters.spec("CBS Safety", "safety", adapters.returning("CBS Safety", SafetyData()), binder=by_neighborhood),
    )
    agg = PropertyAggregator(settings, cache=memory_cache, registry=registry, resolver=no_neighbourhood)
    channel = ProgressChannel()
    try:
        record = agg.aggregate("3541ED", "53", progress=channel)
    finally:
        agg.close()

    assert [e.status for e in _events(channel)] == ["skipped-no-key"]
    assert record.safety is None
    assert adapters.calls["CBS Safety"] == 0


def test_api_keys_enable_credentialed_adapter_for_one_call(aggregator, adapters):
    record = aggregator.aggregate("3541ED", "53", bypass_cache=True, api_keys={"skygeo": "per-request"})
    assert "SkyGeo" in record.data_sources
    assert aggregator.settings.skygeo_api_key is None

    record = aggregator.aggregate("3541ED", "53", bypass_cache=True)
    assert "SkyGeo" not in record.data_sources

    record = aggregator.aggregate("3541ED", "53", bypass_cache=True, api_keys={"SKYGEO_API_KEY": "per-request"})
    assert "SkyGeo" in record.data_sources


def test_second_call_is_served_from_cache(aggregator, adapters, memory_cache):
    first = aggregator.aggregate("3541ED", "53")
    channel = ProgressChannel()
    second = aggregator.aggregate(" 3541 ed ", "53 ", progress=channel)

    assert first.encode() == second.encode()
    assert adapters.calls["KNMI Weather"] == 1
    events = _events(channel)
    assert [(e.source, e.status) for e in events] == [("Cache", "success")]
    assert memory_cache.exists(CacheKey.aggregated("3541ED", "53"))


def test_bypass_cache_refetches(aggregator, adapters):
    aggregator.aggregate("3541ED", "53")
    aggregator.aggregate("3541ED", "53", bypass_cache=True)
    assert adapters.calls["KNMI Weather"] == 2


def test_unknown_address_raises(aggregator, adapters, memory_cache):
    with pytest.raises(AddressNotFound):
        aggregator.aggregate(UNKNOWN_POSTCODE, "1")
    assert sum(adapters.calls.values()) == 0
    assert not memory_cache.exists(CacheKey.aggregated(UNKNOWN_POSTCODE, "1"))


def test_cancel_stops_supervisor_without_cache_write(settings, memory_cache, adapters):
    started = threading.Event()
    release = threading.Event()

    def slow(ctx, settings, params):
        started.set()
        release.wait(5)
        raise UpstreamError("Slow", "too late")

    registry = (
        adapters.spec("KNMI Weather", "weather", adapters.returning("KNMI Weather", WeatherData())),
        adapters.spec("Slow", "bro_soil_map", slow),
    )
    agg = PropertyAggregator(settings, cache=memory_cache, registry=registry, resolver=fake_resolver, poll_interval=0.02)
    cancel = threading.Event()
    channel = ProgressChannel()
    outcome = {}

    def run():
        try:
            agg.aggregate("3541ED", "53", progress=channel, cancel=cancel)
        except Cancelled:
            outcome["cancelled"] = time.monotonic()

    thread = threading.Thread(target=run)
    thread.start()
    try:
        assert started.wait(5)
        cancelled_at = time.monotonic()
        cancel.set()
        thread.join(timeout=2)

        assert not thread.is_alive()
        assert outcome["cancelled"] - cancelled_at < 1.0
        assert not memory_cache.exists(CacheKey.aggregated("3541ED", "53"))
        assert channel.closed
    finally:
        release.set()
        agg.close()


def test_concurrent_calls_share_one_fan_out(settings, memory_cache, adapters):
    gate = threading.Event()

    def gated(ctx, settings, params):
        adapters.calls["Gated"] += 1
        gate.wait(5)
        return WeatherData(temperature=3.0)

    registry = (adapters.spec("Gated", "weather", gated),)
    agg = PropertyAggregator(settings, cache=None, registry=registry, resolver=fake_resolver, poll_interval=0.02)
    results = []

    def run():
        results.append(agg.aggregate("3541ED", "53"))

    threads = [threading.Thread(target=run) for _ in range(4)]
    try:
        for thread in threads:
            thread.start()
        time.sleep(0.2)
        gate.set()
        for thread in threads:
            thread.join(timeout=5)
    finally:
        gate.set()
        agg.close()

    assert len(results) == 4
    assert adapters.calls["Gated"] == 1
    assert len({record.encode() for record in results}) == 1


class CountingSummarizer:
    def __init__(self, error: Exception | None = None) -> None:
        self.records = []
        self.error = error

    def __call__(self, ctx, settings, record):
        self.records.append(record)
        if self.error is not None:
            raise self.error
        return AISummary(summary="Quiet street close to the centre.", generated=True)


def test_summary_is_skipped_without_key(settings, memory_cache, adapters):
    summarizer = CountingSummarizer()
    agg = PropertyAggregator(
        settings, cache=memory_cache, registry=adapters.registry, resolver=fake_resolver, summarizer=summarizer
    )
    channel = ProgressChannel()
    try:
        record = agg.aggregate("3541ED", "53", progress=channel)
    finally:
        agg.close()

    assert summarizer.records == []
    assert record.ai_summary is None
    assert "Gemini AI" not in record.data_sources
    assert "Gemini AI" not in record.errors
    assert all(event.source != "Gemini AI" for event in _events(channel))


def test_summary_runs_after_fan_out(settings, memory_cache, adapters):
    summarizer = CountingSummarizer()
    configured = settings.model_copy(update={"gemini_api_key": "gem-key"})
    agg = PropertyAggregator(
        configured, cache=memory_cache, registry=adapters.registry, resolver=fake_resolver, summarizer=summarizer
    )
    channel = ProgressChannel()
    try:
        record = agg.aggregate("3541ED", "53", progress=channel)
    finally:
        agg.close()

    assert record.ai_summary.generated
    assert record.ai_summary.summary.startswith("Quiet street")
    assert record.data_sources[-1] == "Gemini AI"
    # The summary sees every adapter result
    assert summarizer.records[0].weather.temperature == 12.5

    events = _events(channel)
    summary_events = [e for e in events if e.source == "Gemini AI"]
    assert [e.status for e in summary_events] == ["running", "success"]
    total = len(adapters.registry) + 1
    assert all(event.total == total for event in events)
    assert summary_events[-1].completed == total

    cached = agg.cached("3541ED", "53")
    assert cached.ai_summary == record.ai_summary


def test_summary_failure_is_recorded(settings, memory_cache, adapters):
    summarizer = CountingSummarizer(error=UpstreamError("Gemini AI", "AI service returned status 500", 500))
    agg = PropertyAggregator(
        settings, cache=memory_cache, registry=adapters.registry, resolver=fake_resolver, summarizer=summarizer
    )
    channel = ProgressChannel()
    try:
        record = agg.aggregate("3541ED", "53", progress=channel, api_keys={"GEMINI_API_KEY": "per-request"})
    finally:
        agg.close()

    assert len(summarizer.records) == 1
    assert record.ai_summary is None
    assert record.errors["Gemini AI"] == "AI service returned status 500"
    assert "Gemini AI" not in record.data_sources
    last = [e for e in _events(channel) if e.source == "Gemini AI"][-1]
    assert (last.status, last.error) == ("failure", "AI service returned status 500")
