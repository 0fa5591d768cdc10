from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.sources import (
    Coordinates,
    EducationData,
    FacilitiesData,
    Facility,
    PublicTransportData,
    School,
    TransportStop,
)
from addressiq.services.fetchers.client import AdapterParams, FetchContext, post_form
from addressiq.utils.geo import haversine_m

logger = get_logger(__name__)

OVERPASS_ENDPOINTS = (
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://maps.mail.ru/osm/tools/overpass/api/interpreter",
)
OVERPASS_RETRY_ROUNDS = 2
OVERPASS_BACKOFF_BASE_SEC = 3.0

TRANSPORT_RADIUS_M = 1000
EDUCATION_RADIUS_M = 2000
FACILITIES_RADIUS_M = 1500
MAX_STOPS = 10
MAX_FACILITIES = 20
DEFAULT_SCHOOL_QUALITY = 7.0
WALK_M_PER_MIN = 80
DRIVE_M_PER_MIN = 500


def fetch_public_transport(ctx: FetchContext, settings: Settings, params: AdapterParams) -> PublicTransportData:
    around = f"(around:{TRANSPORT_RADIUS_M},{params.lat:.6f},{params.lon:.6f})"
    query = f"""
    [out:json][timeout:15];
    (
      node["highway"="bus_stop"]{around};
      node["railway"="tram_stop"]{around};
      node["railway"="station"]{around};
      node["railway"="halt"]{around};
      node["public_transport"="stop_position"]{around};
      node["public_transport"="platform"]{around};
      node["amenity"="bus_station"]{around};
    );
    out body qt 50;
    """
    data = _query_overpass(ctx, "OpenOV", query, base_url=settings.openov_api_url)
    if data is None:
        return PublicTransportData()

    stops: list[TransportStop] = []
    for element in data.get("elements", []):
        lat, lon = _element_lat_lon(element)
        if lat is None or lon is None:
            continue
        tags = element.get("tags") or {}
        stop_type = _stop_type(tags)
        stops.append(
            TransportStop(
                stop_id=str(element.get("id", "")),
                name=tags.get("name") or f"{stop_type} stop",
                type=stop_type,
                distance=haversine_m(params.lat, params.lon, lat, lon),
                coordinates=Coordinates(lat=lat, lon=lon),
            )
        )
    stops.sort(key=lambda stop: stop.distance)
    return PublicTransportData(nearest_stops=stops[:MAX_STOPS])


def _stop_type(tags: dict) -> str:
    railway = tags.get("railway")
    if railway in ("station", "halt"):
        return "Train"
    if railway == "tram_stop":
        return "Tram"
    return "Bus"


def fetch_education(ctx: FetchContext, settings: Settings, params: AdapterParams) -> EducationData:
    around = f"(around:{EDUCATION_RADIUS_M},{params.lat:.6f},{params.lon:.6f})"
    query = f"""
    [out:json][timeout:10];
    (
      node["amenity"="school"]{around};
      way["amenity"="school"]{around};
    );
    out center body qt 20;
    """
    data = _query_overpass(ctx, "Education", query, base_url=settings.education_api_url)
    if data is None:
        return EducationData()

    schools: list[School] = []
    nearest_primary: School | None = None
    nearest_secondary: School | None = None
    for element in data.get("elements", []):
        lat, lon = _element_lat_lon(element)
        if lat is None or lon is None:
            continue
        tags = element.get("tags") or {}
        name = tags.get("name") or ""
        address = ""
        if tags.get("addr:street"):
            address = f"{tags['addr:street']} {tags.get('addr:housenumber', '')}, {tags.get('addr:city', '')}"
        school = School(
            name=name,
            type=_school_type(tags.get("isced:level") or "", name),
            distance=haversine_m(params.lat, params.lon, lat, lon),
            quality_score=DEFAULT_SCHOOL_QUALITY,
            address=address,
            denomination=tags.get("religion") or "Public",
            lat=lat,
            lon=lon,
        )
        schools.append(school)
        if school.type == "Primary" and (nearest_primary is None or school.distance < nearest_primary.distance):
            nearest_primary = school
        elif school.type == "Secondary" and (
            nearest_secondary is None or school.distance < nearest_secondary.distance
        ):
            nearest_secondary = school

    average = DEFAULT_SCHOOL_QUALITY
    if schools:
        average = sum(school.quality_score for school in schools) / len(schools)
    return EducationData(
        nearest_primary_school=nearest_primary,
        nearest_secondary_school=nearest_secondary,
        all_schools=schools,
        average_quality=average,
    )


def _school_type(isced_level: str, name: str) -> str:
    # ISCED 0 pre-primary, 1 primary, 2-3 secondary
    if isced_level == "0":
        return "Pre-Primary"
    if isced_level == "1":
        return "Primary"
    if isced_level in ("2", "3"):
        return "Secondary"
    lowered = name.lower()
    if "basisschool" in lowered or "primary" in lowered:
        return "Primary"
    if any(word in lowered for word in ("vmbo", "havo", "vwo", "college", "lyceum", "secondary")):
        return "Secondary"
    return "Primary"


_FACILITY_TAGS: tuple[tuple[str, str, str, str], ...] = (
    ("shop", "supermarket", "Retail", "Supermarket"),
    ("amenity", "pharmacy", "Healthcare", "Pharmacy"),
    ("amenity", "doctors", "Healthcare", "Doctor"),
    ("amenity", "hospital", "Healthcare", "Hospital"),
    ("amenity", "restaurant", "Dining", "Restaurant"),
    ("amenity", "cafe", "Dining", "Cafe"),
    ("leisure", "fitness_centre", "Leisure", "Gym"),
    ("amenity", "bank", "Services", "Bank"),
    ("amenity", "post_office", "Services", "Post Office"),
)


def fetch_facilities(ctx: FetchContext, settings: Settings, params: AdapterParams) -> FacilitiesData:
    around = f"(around:{FACILITIES_RADIUS_M},{params.lat:.6f},{params.lon:.6f})"
    selectors = "\n".join(f'      node["{key}"="{value}"]{around};' for key, value, _, _ in _FACILITY_TAGS)
    query = f"""
    [out:json][timeout:15];
    (
{selectors}
    );
    out body qt 50;
    """
    data = _query_overpass(ctx, "Facilities", query, base_url=settings.facilities_api_url)
    if data is None:
        return FacilitiesData()

    facilities: list[Facility] = []
    counts: dict[str, int] = {}
    for element in data.get("elements", []):
        lat, lon = _element_lat_lon(element)
        if lat is None or lon is None:
            continue
        tags = element.get("tags") or {}
        category, facility_type = _categorize_facility(tags)
        distance = haversine_m(params.lat, params.lon, lat, lon)
        facilities.append(
            Facility(
                name=tags.get("name") or facility_type,
                category=category,
                type=facility_type,
                distance=distance,
                walk_time=int(distance / WALK_M_PER_MIN),
                drive_time=int(distance / DRIVE_M_PER_MIN),
                rating=4.0,
                lat=lat,
                lon=lon,
            )
        )
        counts[category] = counts.get(category, 0) + 1

    facilities.sort(key=lambda facility: facility.distance)
    top = facilities[:MAX_FACILITIES]
    return FacilitiesData(
        top_facilities=top,
        amenities_score=amenities_score(counts, top),
        category_counts=counts,
    )


def _categorize_facility(tags: dict) -> tuple[str, str]:
    for key, value, category, facility_type in _FACILITY_TAGS:
        if tags.get(key) == value:
            return category, facility_type
    if tags.get("healthcare") == "pharmacy":
        return "Healthcare", "Pharmacy"
    if tags.get("healthcare") == "doctor":
        return "Healthcare", "Doctor"
    return "Other", tags.get("amenity") or ""


def amenities_score(counts: dict[str, int], facilities: list[Facility]) -> float:
    """0-100: category variety (40), number of facilities (30), proximity (30)."""
    score = min(40.0, len(counts) * 8.0)
    score += min(30.0, len(facilities) * 2.0)
    if facilities:
        avg_distance = sum(facility.distance for facility in facilities) / len(facilities)
        score += max(0.0, 30.0 * (1 - avg_distance / FACILITIES_RADIUS_M))
    return score


def _query_overpass(ctx: FetchContext, source: str, query: str, base_url: str | None = None) -> dict | None:
    endpoints = (base_url,) if base_url else OVERPASS_ENDPOINTS
    # Rotate endpoints first, then back off between rounds.
    for round_idx in range(OVERPASS_RETRY_ROUNDS):
        for endpoint in endpoints:
            try:
                data = post_form(ctx, source, endpoint, {"data": query})
            except UpstreamError as exc:
                logger.debug("[%s] %s failed: %s", source, endpoint, exc)
                continue
            if isinstance(data, dict):
                return data

        if round_idx < OVERPASS_RETRY_ROUNDS - 1:
            ctx.sleep(OVERPASS_BACKOFF_BASE_SEC * (2**round_idx))

    logger.info("[%s] all Overpass endpoints failed", source)
    return None


def _element_lat_lon(element: dict) -> tuple[float | None, float | None]:
    if element.get("type") == "node" or "lat" in element:
        return element.get("lat"), element.get("lon")
    center = element.get("center")
    if isinstance(center, dict):
        return center.get("lat"), center.get("lon")
    return None, None
