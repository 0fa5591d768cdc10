from dataclasses import dataclass
from functools import partial
from typing import Any, Callable

from addressiq.core.config import Settings
from addressiq.schemas.property import ResolvedAddress
from addressiq.services.fetchers import (
    demographics,
    energy,
    environment,
    infrastructure,
    mobility,
    overpass_osm,
    platform,
    soil,
    valuation,
    water_safety,
    weather,
)
from addressiq.services.fetchers.client import AdapterParams, FetchContext

Binder = Callable[[ResolvedAddress], AdapterParams | None]
Fetch = Callable[[FetchContext, Settings, AdapterParams], Any]

RESOLVER_SOURCE = "BAG"


@dataclass(frozen=True)
class AdapterSpec:
    name: str
    slot: str
    display_name: str
    tier: str
    credential: str | None
    binder: Binder
    fetch: Fetch


def _base(resolved: ResolvedAddress, radius: int = 0) -> AdapterParams:
    return AdapterParams(
        lat=resolved.lat,
        lon=resolved.lon,
        bag_id=resolved.bag_id,
        neighborhood_code=resolved.neighborhood_code,
        municipality_code=resolved.municipality_code,
        postcode=resolved.postcode,
        house_number=resolved.house_number,
        radius=radius,
    )


def by_geo(resolved: ResolvedAddress) -> AdapterParams:
    return _base(resolved)


def by_radius(radius: int) -> Binder:
    return partial(_base, radius=radius)


def by_building(resolved: ResolvedAddress) -> AdapterParams | None:
    return _base(resolved) if resolved.bag_id else None


def by_neighborhood(resolved: ResolvedAddress) -> AdapterParams | None:
    return _base(resolved) if resolved.neighborhood_code else None


def by_municipality(resolved: ResolvedAddress) -> AdapterParams | None:
    return _base(resolved) if resolved.municipality_code else None


ADAPTERS: tuple[AdapterSpec, ...] = (
    # Property and valuation
    AdapterSpec(
        name="Kadaster",
        slot="kadaster_info",
        display_name="Kadaster Object Info",
        tier="freemium",
        credential="kadaster_objectinfo_api_key",
        binder=by_building,
        fetch=valuation.fetch_kadaster_info,
    ),
    AdapterSpec(
        name="Altum WOZ",
        slot="woz_data",
        display_name="Altum WOZ",
        tier="freemium",
        credential="altum_woz_api_key",
        binder=by_building,
        fetch=valuation.fetch_woz,
    ),
    AdapterSpec(
        name="Matrixian",
        slot="market_valuation",
        display_name="Matrixian Property Value+",
        tier="freemium",
        credential="matrixian_api_key",
        binder=by_building,
        fetch=valuation.fetch_market_valuation,
    ),
    AdapterSpec(
        name="Altum Transactions",
        slot="transaction_history",
        display_name="Altum Transactions",
        tier="freemium",
        credential="altum_transaction_api_key",
        binder=by_building,
        fetch=valuation.fetch_transactions,
    ),
    AdapterSpec(
        name="Monument Register",
        slot="monument_status",
        display_name="Monument Status",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=valuation.fetch_monument_status,
    ),
    # Weather
    AdapterSpec(
        name="KNMI Weather",
        slot="weather",
        display_name="KNMI Weather",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=weather.fetch_weather,
    ),
    AdapterSpec(
        name="KNMI Solar",
        slot="solar_potential",
        display_name="KNMI Solar",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=weather.fetch_solar,
    ),
    # Soil and environment
    AdapterSpec(
        name="WUR Soil",
        slot="soil_data",
        display_name="WUR Soil Physicals",
        tier="freemium",
        credential=None,
        binder=by_geo,
        fetch=soil.fetch_wur_soil,
    ),
    AdapterSpec(
        name="SkyGeo",
        slot="subsidence",
        display_name="SkyGeo Subsidence",
        tier="freemium",
        credential="skygeo_api_key",
        binder=by_geo,
        fetch=soil.fetch_subsidence,
    ),
    AdapterSpec(
        name="Soil Quality",
        slot="soil_quality",
        display_name="Soil Quality",
        tier="freemium",
        credential=None,
        binder=by_geo,
        fetch=soil.fetch_soil_quality,
    ),
    AdapterSpec(
        name="BRO",
        slot="bro_soil_map",
        display_name="BRO Soil Map",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=soil.fetch_bro_soil_map,
    ),
    AdapterSpec(
        name="Air Quality",
        slot="air_quality",
        display_name="Luchtmeetnet Air Quality",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=environment.fetch_air_quality,
    ),
    AdapterSpec(
        name="Noise Register",
        slot="noise_pollution",
        display_name="Noise Pollution",
        tier="freemium",
        credential=None,
        binder=by_geo,
        fetch=environment.fetch_noise_pollution,
    ),
    # Energy
    AdapterSpec(
        name="Altum Energy",
        slot="energy_climate",
        display_name="Altum Energy & Climate",
        tier="freemium",
        credential="altum_energy_api_key",
        binder=by_building,
        fetch=energy.fetch_energy_climate,
    ),
    AdapterSpec(
        name="Altum Sustainability",
        slot="sustainability",
        display_name="Altum Sustainability",
        tier="freemium",
        credential="altum_sustainability_api_key",
        binder=by_building,
        fetch=energy.fetch_sustainability,
    ),
    # Water and safety
    AdapterSpec(
        name="Flood Risk",
        slot="flood_risk",
        display_name="Flood Risk",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=water_safety.fetch_flood_risk,
    ),
    AdapterSpec(
        name="Digital Delta",
        slot="water_quality",
        display_name="Digital Delta Water Quality",
        tier="freemium",
        credential="digital_delta_api_key",
        binder=by_geo,
        fetch=water_safety.fetch_water_quality,
    ),
    AdapterSpec(
        name="CBS Safety",
        slot="safety",
        display_name="CBS Safety Experience",
        tier="freemium",
        credential="cbs_api_key",
        binder=by_neighborhood,
        fetch=water_safety.fetch_safety,
    ),
    AdapterSpec(
        name="Schiphol",
        slot="schiphol_flights",
        display_name="Schiphol Flight Noise",
        tier="freemium",
        credential="schiphol_api_key",
        binder=by_geo,
        fetch=water_safety.fetch_schiphol_flights,
    ),
    # Mobility
    AdapterSpec(
        name="NDW Traffic",
        slot="traffic_data",
        display_name="NDW Traffic",
        tier="free",
        credential=None,
        binder=by_radius(1000),
        fetch=mobility.fetch_traffic,
    ),
    AdapterSpec(
        name="OpenOV",
        slot="public_transport",
        display_name="openOV Public Transport",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=overpass_osm.fetch_public_transport,
    ),
    AdapterSpec(
        name="Parking",
        slot="parking_data",
        display_name="Parking Availability",
        tier="freemium",
        credential=None,
        binder=by_radius(500),
        fetch=mobility.fetch_parking,
    ),
    # Demographics
    AdapterSpec(
        name="CBS Population",
        slot="population",
        display_name="CBS Population",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=demographics.fetch_population,
    ),
    AdapterSpec(
        name="CBS Square Stats",
        slot="square_stats",
        display_name="CBS Square Statistics",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=demographics.fetch_square_stats,
    ),
    AdapterSpec(
        name="CBS StatLine",
        slot="stat_line_data",
        display_name="CBS StatLine",
        tier="free",
        credential=None,
        binder=by_municipality,
        fetch=demographics.fetch_statline,
    ),
    AdapterSpec(
        name="CBS",
        slot="cbs_data",
        display_name="CBS",
        tier="free",
        credential=None,
        binder=by_neighborhood,
        fetch=demographics.fetch_cbs,
    ),
    # Infrastructure
    AdapterSpec(
        name="Green Spaces",
        slot="green_spaces",
        display_name="Green Spaces",
        tier="free",
        credential=None,
        binder=by_radius(1000),
        fetch=infrastructure.fetch_green_spaces,
    ),
    AdapterSpec(
        name="Education",
        slot="education",
        display_name="Education Facilities",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=overpass_osm.fetch_education,
    ),
    AdapterSpec(
        name="Building Permits",
        slot="building_permits",
        display_name="Building Permits",
        tier="freemium",
        credential=None,
        binder=by_radius(1000),
        fetch=infrastructure.fetch_building_permits,
    ),
    AdapterSpec(
        name="Facilities",
        slot="facilities",
        display_name="Facilities & Amenities",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=overpass_osm.fetch_facilities,
    ),
    AdapterSpec(
        name="AHN",
        slot="elevation",
        display_name="AHN Height Model",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=infrastructure.fetch_elevation,
    ),
    # Platforms
    AdapterSpec(
        name="PDOK Platform",
        slot="pdok_data",
        display_name="PDOK Platform",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=platform.fetch_pdok_platform,
    ),
    AdapterSpec(
        name="Stratopo",
        slot="stratopo_environment",
        display_name="Stratopo Environment",
        tier="freemium",
        credential="stratopo_api_key",
        binder=by_geo,
        fetch=platform.fetch_stratopo_environment,
    ),
    AdapterSpec(
        name="Land Use",
        slot="land_use",
        display_name="Land Use & Zoning",
        tier="free",
        credential=None,
        binder=by_geo,
        fetch=platform.fetch_land_use,
    ),
)


def credential_fields(registry: tuple[AdapterSpec, ...] = ADAPTERS) -> dict[str, str]:
    """Lower-cased adapter name to the settings field holding its credential."""
    return {spec.name.lower(): spec.credential for spec in registry if spec.credential}
