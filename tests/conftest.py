import threading
from collections import Counter
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from addressiq.core.build_info import BuildInfo
from addressiq.core.config import Settings
from addressiq.core.data_sources import AdapterSpec, by_building, by_geo
from addressiq.core.errors import AddressNotFound, UpstreamError
from addressiq.main import create_app
from addressiq.schemas.property import ResolvedAddress
from addressiq.schemas.sources import (
    EnergyClimateData,
    FloodRiskData,
    KadasterObjectInfo,
    SubsidenceData,
    WeatherData,
)
from addressiq.services.aggregator import PropertyAggregator
from addressiq.services.cache import Cache, MemoryBackend, normalize_house_number, normalize_postcode
from addressiq.utils.geo import point_geojson

ADMIN_SECRET = "s3cret"
UNKNOWN_POSTCODE = "0000XX"


def fake_resolver(ctx, settings, postcode: str, house_number: str) -> ResolvedAddress:
    postcode = normalize_postcode(postcode)
    house_number = normalize_house_number(house_number)
    if postcode == UNKNOWN_POSTCODE:
        raise AddressNotFound(postcode, house_number)
    return ResolvedAddress(
        postcode=postcode,
        house_number=house_number,
        address=f"Teststraat {house_number}, {postcode} Utrecht",
        lat=52.0907,
        lon=5.1214,
        bag_id="0344010000012345",
        municipality_code="GM0344",
        neighborhood_code="BU03440101",
        geojson=point_geojson(52.0907, 5.1214),
    )


class FakeAdapters:
    """In-process adapters that count their calls."""

    def __init__(self) -> None:
        self.calls: Counter[str] = Counter()
        self._lock = threading.Lock()

    def returning(self, name: str, value: Any) -> Callable:
        def fetch(ctx, settings, params):
            with self._lock:
                self.calls[name] += 1
            return value

        return fetch

    def failing(self, name: str, message: str = "upstream down") -> Callable:
        def fetch(ctx, settings, params):
            with self._lock:
                self.calls[name] += 1
            raise UpstreamError(name, message)

        return fetch

    def spec(
        self,
        name: str,
        slot: str,
        fetch: Callable,
        *,
        credential: str | None = None,
        binder: Callable = by_geo,
        tier: str = "free",
    ) -> AdapterSpec:
        return AdapterSpec(
            name=name,
            slot=slot,
            display_name=name,
            tier=tier,
            credential=credential,
            binder=binder,
            fetch=fetch,
        )

    @property
    def registry(self) -> tuple[AdapterSpec, ...]:
        return (
            self.spec("KNMI Weather", "weather", self.returning("KNMI Weather", WeatherData(temperature=12.5))),
            self.spec("Flood Risk", "flood_risk", self.returning("Flood Risk", FloodRiskData(risk_level="Low"))),
            self.spec(
                "Altum Energy",
                "energy_climate",
                self.returning("Altum Energy", EnergyClimateData(energy_label="C")),
                binder=by_building,
                tier="freemium",
            ),
            self.spec(
                "Kadaster",
                "kadaster_info",
                self.returning("Kadaster", KadasterObjectInfo(woz_value=350000)),
                credential="kadaster_objectinfo_api_key",
                tier="freemium",
            ),
            self.spec(
                "SkyGeo",
                "subsidence",
                self.returning("SkyGeo", SubsidenceData(stability_rating="Stable")),
                credential="skygeo_api_key",
                tier="premium",
            ),
            self.spec("Noise Register", "noise_pollution", self.failing("Noise Register")),
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        bag_api_url="http://bag.test/search",
        admin_secret=ADMIN_SECRET,
        kadaster_objectinfo_api_key="kadaster-key",
        skygeo_api_key=None,
        gemini_api_key=None,
        redis_url=None,
        max_workers=8,
        progress_buffer_size=64,
    )


@pytest.fixture
def memory_cache() -> Cache:
    return Cache(MemoryBackend())


@pytest.fixture
def adapters() -> FakeAdapters:
    return FakeAdapters()


@pytest.fixture
def aggregator(settings, memory_cache, adapters):
    agg = PropertyAggregator(
        settings,
        cache=memory_cache,
        registry=adapters.registry,
        resolver=fake_resolver,
        poll_interval=0.02,
    )
    yield agg
    agg.close()


@pytest.fixture
def app(settings, memory_cache, adapters):
    application = create_app(
        settings,
        registry=adapters.registry,
        cache=memory_cache,
        build_info=BuildInfo("abc123", "2026-01-01", "def456", "2026-01-02"),
    )
    application.state.aggregator.resolver = fake_resolver
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
