from __future__ import annotations

import math

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.sources import BuildingPermitsData, ElevationData, GreenSpace, GreenSpacesData
from addressiq.services.fetchers.client import AdapterParams, FetchContext, get_json, retry_with_backoff
from addressiq.utils.geo import bbox_param, haversine_m, polygon_centroid, radius_to_degrees

logger = get_logger(__name__)

BGT_DEFAULT_URL = "https://api.pdok.nl/lv/bgt/ogc/v1"
NATURA2000_URL = "https://api.pdok.nl/rvo/natura2000/ogc/v1"
OPEN_ELEVATION_URL = "https://api.open-elevation.com/api/v1/lookup"
RETRY_ATTEMPTS = 3
RETRY_INITIAL_DELAY_SEC = 2.0
DEFAULT_GREEN_AREA_M2 = 500.0

_BGT_GREEN_TYPES = {
    "groenvoorziening": "Garden",
    "bos": "Forest",
    "loofbos": "Forest",
    "naaldbos": "Forest",
    "gemengd bos": "Forest",
    "grasland agrarisch": "Grassland",
    "grasland overig": "Grassland",
    "heide": "Heath",
    "moeras": "Wetland",
    "fruitteelt": "Orchard",
}


def fetch_green_spaces(ctx: FetchContext, settings: Settings, params: AdapterParams) -> GreenSpacesData:
    """Vegetated terrain from the BGT within ``params.radius``, plus Natura 2000 reserves further out."""
    base = (settings.green_spaces_api_url or BGT_DEFAULT_URL).rstrip("/")
    radius = params.radius
    url = f"{base}/collections/begroeidterreindeel/items"
    query = {"bbox": bbox_param(params.lat, params.lon, radius_to_degrees(radius)), "f": "json", "limit": "50"}
    try:
        payload = retry_with_backoff(
            ctx,
            "Green Spaces",
            lambda: get_json(ctx, "Green Spaces", url, params=query),
            attempts=RETRY_ATTEMPTS,
            initial_delay=RETRY_INITIAL_DELAY_SEC,
        )
    except UpstreamError as exc:
        logger.info("[Green Spaces] failed after retries: %s", exc)
        return GreenSpacesData()

    spaces: list[GreenSpace] = []
    total_area = 0.0
    nearest_park = ""
    nearest_distance: float | None = None
    for feature in (payload or {}).get("features") or []:
        props = feature.get("properties") or {}
        geometry = feature.get("geometry") or {}
        green_type = _BGT_GREEN_TYPES.get(props.get("fysiek_voorkomen") or "", "Green Area")
        name = props.get("naam") or props.get("openbare_ruimte") or green_type

        lat, lon, area = polygon_centroid(geometry.get("coordinates") or [], geometry.get("type") or "")
        if area == 0:
            area = DEFAULT_GREEN_AREA_M2
        distance = radius / 2
        if lat and lon:
            distance = haversine_m(params.lat, params.lon, lat, lon)

        if green_type in ("Park", "Garden") and (nearest_distance is None or distance < nearest_distance):
            nearest_distance = distance
            nearest_park = name

        total_area += area
        spaces.append(GreenSpace(name=name, type=green_type, area=area, distance=distance, lat=lat, lon=lon))

    search_area = math.pi * radius * radius
    percentage = min(100.0, total_area / search_area * 100) if search_area > 0 else 0.0

    reserves = _natura2000_areas(ctx, params)
    spaces.extend(reserves)
    if not nearest_park and reserves:
        nearest_park = reserves[0].name
        nearest_distance = reserves[0].distance

    return GreenSpacesData(
        total_green_area=total_area,
        green_percentage=percentage,
        nearest_park=nearest_park,
        park_distance=nearest_distance or 0.0,
        # Tree cover is estimated as 30% of green area
        tree_canopy_cover=percentage * 0.3,
        green_spaces=spaces,
    )


def _natura2000_areas(ctx: FetchContext, params: AdapterParams) -> list[GreenSpace]:
    try:
        payload = get_json(
            ctx,
            "Natura 2000",
            f"{NATURA2000_URL}/collections/natura2000/items",
            params={
                "bbox": bbox_param(params.lat, params.lon, radius_to_degrees(params.radius) * 5),
                "f": "json",
                "limit": "5",
            },
        )
    except UpstreamError:
        return []
    return [
        GreenSpace(
            name=(feature.get("properties") or {}).get("naam") or "",
            type="Nature Reserve",
            area=float((feature.get("properties") or {}).get("oppervlakte") or 0.0),
            distance=params.radius * 3.0,
        )
        for feature in (payload or {}).get("features") or []
    ]


def fetch_building_permits(ctx: FetchContext, settings: Settings, params: AdapterParams) -> BuildingPermitsData:
    if not settings.building_permits_api_url:
        return BuildingPermitsData()
    url = f"{settings.building_permits_api_url.rstrip('/')}/permits"
    query = {"lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}", "radius": params.radius, "years": "2"}
    try:
        payload = retry_with_backoff(
            ctx,
            "Building Permits",
            lambda: get_json(ctx, "Building Permits", url, params=query),
            attempts=RETRY_ATTEMPTS,
            initial_delay=RETRY_INITIAL_DELAY_SEC,
        )
    except UpstreamError as exc:
        logger.info("[Building Permits] failed after retries: %s", exc)
        return BuildingPermitsData()
    return BuildingPermitsData.model_validate(payload or {})


def fetch_elevation(ctx: FetchContext, settings: Settings, params: AdapterParams) -> ElevationData:
    """Height above NAP; falls back to a regional estimate when the lookup fails."""
    base = settings.ahn_height_model_api_url or OPEN_ELEVATION_URL
    try:
        payload = get_json(ctx, "AHN", base, params={"locations": f"{params.lat:.6f},{params.lon:.6f}"})
    except UpstreamError as exc:
        logger.debug("[AHN] estimating elevation: %s", exc)
        return estimate_elevation(params.lat, params.lon)

    results = (payload or {}).get("results") or []
    if not results:
        return estimate_elevation(params.lat, params.lon)

    elevation = float(results[0].get("elevation") or 0.0)
    if elevation < -2.0:
        flood_risk = "High"
    elif elevation < 1.0:
        flood_risk = "Medium"
    else:
        flood_risk = "Low"

    if elevation > 5.0:
        view = "Excellent"
    elif elevation > 2.0:
        view = "Good"
    elif elevation < -1.0:
        view = "Poor"
    else:
        view = "Fair"

    return ElevationData(
        elevation=elevation,
        terrain_slope=0.5,
        flood_risk=flood_risk,
        view_potential=view,
        surrounding=[elevation - 0.5, elevation + 0.5, elevation, elevation - 0.3],
    )


def estimate_elevation(lat: float, lon: float) -> ElevationData:
    # Central Amsterdam sits near NAP; the polders around it drop to about -5 m.
    distance = math.hypot(lat - 52.37, lon - 4.89)
    elevation = max(-5.0, min(2.0, -1.0 - distance * 10))
    if elevation < -2.0:
        flood_risk = "High"
    elif elevation > 0:
        flood_risk = "Low"
    else:
        flood_risk = "Medium"
    return ElevationData(
        elevation=elevation,
        terrain_slope=0.5,
        flood_risk=flood_risk,
        view_potential="Fair",
        surrounding=[elevation - 0.5, elevation + 0.5],
    )
