import json
import threading
from datetime import datetime, timezone
from urllib.error import HTTPError, URLError

import pytest

from addressiq.core.errors import Cancelled, UpstreamError
from addressiq.schemas.property import PropertyRecord
from addressiq.services.fetchers import (
    client,
    energy,
    infrastructure,
    overpass_osm,
    summary,
    valuation,
    water_safety,
)
from addressiq.services.fetchers.client import AdapterParams, FetchContext, retry_with_backoff

PARAMS = AdapterParams(lat=52.0907, lon=5.1214, bag_id="0344010000012345", neighborhood_code="BU03440101")


class DummyResp:
    def __init__(self, payload):
        self._payload = payload

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def read(self):
        return json.dumps(self._payload).encode("utf-8")


def respond_with(monkeypatch, payload=None, status=None, transport_error=False):
    seen = []

    def fake_urlopen(req, timeout=0):
        seen.append(req)
        if transport_error:
            raise URLError("connection refused")
        if status is not None:
            raise HTTPError(req.full_url, status, "error", {}, None)
        return DummyResp(payload)

    monkeypatch.setattr(client, "urlopen", fake_urlopen)
    return seen


def test_energy_label_defaults_when_unconfigured(settings):
    assert energy.fetch_energy_climate(FetchContext(), settings, PARAMS).energy_label == "Unknown"


def test_energy_label_reads_payload(settings, monkeypatch):
    seen = respond_with(monkeypatch, {"energyLabel": "B", "efficiencyScore": 72})
    configured = settings.model_copy(
        update={"altum_energy_api_url": "http://energy.test/", "altum_energy_api_key": "tok"}
    )

    result = energy.fetch_energy_climate(FetchContext(), configured, PARAMS)

    assert result.energy_label == "B"
    assert result.efficiency_score == 72
    assert seen[0].full_url == "http://energy.test/energy/0344010000012345"
    assert seen[0].get_header("Authorization") == "Bearer tok"


def test_energy_label_missing_building_is_a_failure(settings, monkeypatch):
    respond_with(monkeypatch, status=404)
    configured = settings.model_copy(update={"altum_energy_api_url": "http://energy.test"})

    with pytest.raises(UpstreamError, match="energy data not found for BAG ID"):
        energy.fetch_energy_climate(FetchContext(), configured, PARAMS)


def test_energy_label_server_error_is_soft(settings, monkeypatch):
    respond_with(monkeypatch, status=500)
    configured = settings.model_copy(update={"altum_energy_api_url": "http://energy.test"})
    assert energy.fetch_energy_climate(FetchContext(), configured, PARAMS).energy_label == "Unknown"


def test_flood_risk_without_zone_is_protected(settings, monkeypatch):
    respond_with(monkeypatch, {"features": []})
    result = water_safety.fetch_flood_risk(FetchContext(), settings, PARAMS)
    assert (result.risk_level, result.flood_zone) == ("Low", "Protected")


def test_flood_risk_protected_high_zone_is_medium(settings, monkeypatch):
    respond_with(
        monkeypatch,
        {"features": [{"properties": {"qualitative_value": "High probability", "description": "Beschermd gebied"}}]},
    )
    result = water_safety.fetch_flood_risk(FetchContext(), settings, PARAMS)
    assert result.risk_level == "Medium"
    assert result.flood_probability == 0.1


@pytest.mark.parametrize("kwargs, expected", [({"status": 503}, "Low"), ({"transport_error": True}, "Unknown")])
def test_flood_risk_upstream_errors(settings, monkeypatch, kwargs, expected):
    respond_with(monkeypatch, **kwargs)
    assert water_safety.fetch_flood_risk(FetchContext(), settings, PARAMS).risk_level == expected


def test_safety_not_found_is_neutral(settings, monkeypatch):
    respond_with(monkeypatch, status=404)
    configured = settings.model_copy(update={"safety_experience_api_url": "http://safety.test"})
    result = water_safety.fetch_safety(FetchContext(), configured, PARAMS)
    assert (result.safety_score, result.safety_perception) == (70.0, "Moderate")


def test_safety_perception_from_score(settings, monkeypatch):
    seen = respond_with(monkeypatch, {"safetyScore": 85, "crimeRate": 12.5})
    configured = settings.model_copy(update={"safety_experience_api_url": "http://safety.test"})

    result = water_safety.fetch_safety(FetchContext(), configured, PARAMS)

    assert result.safety_perception == "Very Safe"
    assert "neighborhood=BU03440101" in seen[0].full_url


def test_unconfigured_url_fails_fast(settings):
    with pytest.raises(UpstreamError, match="Kadaster API URL not configured"):
        valuation.fetch_kadaster_info(FetchContext(), settings, PARAMS)


def test_facilities_are_sorted_and_scored(settings, monkeypatch):
    elements = [
        {"type": "node", "lat": 52.0950, "lon": 5.1214, "tags": {"shop": "supermarket", "name": "Albert Heijn"}},
        {"type": "node", "lat": 52.0910, "lon": 5.1214, "tags": {"amenity": "cafe"}},
        {"type": "way", "center": {"lat": 52.0920, "lon": 5.1220}, "tags": {"amenity": "pharmacy"}},
        {"type": "way", "tags": {"amenity": "bank"}},
    ]
    seen = respond_with(monkeypatch, {"elements": elements})
    configured = settings.model_copy(update={"facilities_api_url": "http://overpass.test/api/interpreter"})

    result = overpass_osm.fetch_facilities(FetchContext(), configured, PARAMS)

    assert len(seen) == 1
    assert seen[0].get_method() == "POST"
    assert [f.type for f in result.top_facilities] == ["Cafe", "Pharmacy", "Supermarket"]
    assert result.top_facilities[0].name == "Cafe"
    assert result.category_counts == {"Retail": 1, "Dining": 1, "Healthcare": 1}
    assert 0 < result.amenities_score <= 100


def test_overpass_gives_up_with_empty_record(settings, monkeypatch):
    respond_with(monkeypatch, status=429)
    monkeypatch.setattr(overpass_osm, "OVERPASS_BACKOFF_BASE_SEC", 0.0)
    configured = settings.model_copy(update={"openov_api_url": "http://overpass.test"})

    assert overpass_osm.fetch_public_transport(FetchContext(), configured, PARAMS).nearest_stops == []


def test_elevation_falls_back_to_estimate(settings, monkeypatch):
    respond_with(monkeypatch, transport_error=True)
    result = infrastructure.fetch_elevation(FetchContext(), settings, PARAMS)
    assert result == infrastructure.estimate_elevation(PARAMS.lat, PARAMS.lon)
    assert -5.0 <= result.elevation <= 2.0


def test_retry_with_backoff_retries_then_raises():
    attempts = []

    def call():
        attempts.append(1)
        raise UpstreamError("Test", "boom")

    with pytest.raises(UpstreamError, match="boom"):
        retry_with_backoff(FetchContext(), "Test", call, attempts=3, initial_delay=0)
    assert len(attempts) == 3


def test_retry_with_backoff_stops_on_cancel():
    cancel = threading.Event()
    attempts = []

    def call():
        attempts.append(1)
        cancel.set()
        raise UpstreamError("Test", "boom")

    with pytest.raises(Cancelled):
        retry_with_backoff(FetchContext(cancel=cancel), "Test", call, attempts=5, initial_delay=10)
    assert len(attempts) == 1


def _summary_record(**slots) -> PropertyRecord:
    return PropertyRecord(
        address="Teststraat 53, 3541ED Utrecht",
        coordinates=(5.1214, 52.0907),
        aggregated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        data_sources=["BAG"],
        **slots,
    )


def test_summary_requires_key(settings):
    with pytest.raises(UpstreamError, match="Gemini API key not configured"):
        summary.summarize_location(FetchContext(), settings, _summary_record())


def test_summary_posts_record_and_reads_first_candidate(settings, monkeypatch):
    seen = respond_with(monkeypatch, {"candidates": [{"content": {"parts": [{"text": "Solid family area."}]}}]})
    configured = settings.model_copy(update={"gemini_api_url": "http://gemini.test/generate", "gemini_api_key": "k"})

    result = summary.summarize_location(FetchContext(), configured, _summary_record())

    assert (result.summary, result.generated) == ("Solid family area.", True)
    assert seen[0].get_method() == "POST"
    assert seen[0].full_url == "http://gemini.test/generate"
    assert seen[0].get_header("X-goog-api-key") == "k"
    body = json.loads(seen[0].data)
    prompt = body["contents"][0]["parts"][0]["text"]
    assert '"address":"Teststraat 53, 3541ED Utrecht"' in prompt
    assert body["generationConfig"]["maxOutputTokens"] == summary.MAX_OUTPUT_TOKENS


def test_summary_prompt_truncates_large_records(monkeypatch):
    monkeypatch.setattr(summary, "MAX_PROMPT_DATA_CHARS", 50)
    prompt = summary.build_prompt(_summary_record())
    assert prompt.endswith(_summary_record().model_dump_json(by_alias=True, exclude_none=True)[:50])


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"error": {"code": 400, "message": "API key not valid"}}, "API key not valid"),
        ({"candidates": []}, "AI returned empty response"),
    ],
)
def test_summary_upstream_errors(settings, monkeypatch, payload, message):
    respond_with(monkeypatch, payload)
    configured = settings.model_copy(update={"gemini_api_key": "k"})
    with pytest.raises(UpstreamError, match=message):
        summary.summarize_location(FetchContext(), configured, _summary_record())
