import math
import re

EARTH_RADIUS_M = 6371000.0
METERS_PER_DEGREE = 111000.0

_POINT_RE = re.compile(r"POINT\s*\(\s*(-?[\d.]+)\s+(-?[\d.]+)\s*\)", re.IGNORECASE)


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bbox_param(lat: float, lon: float, delta_deg: float) -> str:
    """OGC API bbox string (lon/lat order) around a point."""
    return f"{lon - delta_deg:.6f},{lat - delta_deg:.6f},{lon + delta_deg:.6f},{lat + delta_deg:.6f}"


def radius_to_degrees(radius_m: float) -> float:
    return radius_m / METERS_PER_DEGREE


def parse_wkt_point(value: str | None) -> tuple[float, float] | None:
    """Returns (lon, lat) from a WKT ``POINT(lon lat)`` string."""
    if not value:
        return None
    match = _POINT_RE.search(value)
    if match is None:
        return None
    return float(match.group(1)), float(match.group(2))


def polygon_centroid(coordinates: list, geom_type: str) -> tuple[float, float, float]:
    """Approximate (lat, lon, area_m2) of the outer ring of a Polygon or MultiPolygon."""
    rings = coordinates
    if geom_type == "MultiPolygon":
        if not coordinates or not coordinates[0]:
            return 0.0, 0.0, 0.0
        rings = coordinates[0]
    if not rings or not rings[0]:
        return 0.0, 0.0, 0.0

    ring = [point for point in rings[0] if isinstance(point, (list, tuple)) and len(point) >= 2]
    if not ring:
        return 0.0, 0.0, 0.0

    sum_lat = sum(point[1] for point in ring)
    sum_lon = sum(point[0] for point in ring)
    # Shoelace over consecutive vertices
    area = 0.0
    for current, following in zip(ring, ring[1:]):
        area += current[0] * following[1] - following[0] * current[1]
    area_m2 = abs(area / 2) * METERS_PER_DEGREE * METERS_PER_DEGREE
    return sum_lat / len(ring), sum_lon / len(ring), area_m2


def point_geojson(lat: float, lon: float) -> str:
    return f'{{"type":"Point","coordinates":[{lon},{lat}]}}'
