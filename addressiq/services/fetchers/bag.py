from __future__ import annotations

import json

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.services.fetchers.client import FetchContext, get_json
from addressiq.utils.geo import bbox_param, parse_wkt_point, point_geojson

BAG_SOURCE = "BAG"
REGION_SOURCE = "CBS Buurten"
REGION_BBOX_DELTA = 0.001


def lookup_address(
    ctx: FetchContext, settings: Settings, postcode: str, house_number: str
) -> dict[str, str | float] | None:
    """Looks up one address in the PDOK Locatieserver.

    Returns None when the service answers but has no address for the query.
    """
    payload = get_json(
        ctx,
        BAG_SOURCE,
        settings.bag_api_url,
        params={
            "q": f"postcode:{postcode} AND huisnummer:{house_number}",
            "fq": "type:adres",
            "rows": "1",
            "wt": "json",
        },
    )
    docs = ((payload or {}).get("response") or {}).get("docs") or []
    if not docs:
        return None

    doc = docs[0]
    point = parse_wkt_point(doc.get("centroide_ll"))
    if point is None:
        raise UpstreamError(BAG_SOURCE, "address lookup returned no coordinates")
    lon, lat = point

    address = doc.get("weergavenaam") or _compose_address(doc)
    if not address:
        return None

    building_id = (
        doc.get("adresseerbaarobject_id")
        or doc.get("verblijfsobject_id")
        or doc.get("nummeraanduiding_id")
        or doc.get("id")
        or ""
    )
    geometry = doc.get("geometrie_ll") or doc.get("geojson")
    if isinstance(geometry, dict):
        geojson = json.dumps(geometry, separators=(",", ":"))
    else:
        geojson = point_geojson(lat, lon)

    return {
        "address": address,
        "lat": lat,
        "lon": lon,
        "bag_id": str(building_id),
        "municipality_code": _gemeente_code(doc.get("gemeentecode")),
        "geojson": geojson,
    }


def lookup_region(ctx: FetchContext, settings: Settings, lat: float, lon: float) -> dict[str, str]:
    """Finds the CBS neighbourhood containing a point."""
    payload = get_json(
        ctx,
        REGION_SOURCE,
        f"{settings.cbs_buurten_api_url.rstrip('/')}/collections/buurten/items",
        params={"bbox": bbox_param(lat, lon, REGION_BBOX_DELTA), "f": "json", "limit": "1"},
    )
    features = (payload or {}).get("features") or []
    if not features:
        raise UpstreamError(REGION_SOURCE, "no neighbourhood found for coordinates")
    props = features[0].get("properties") or {}
    return {
        "neighborhood_code": props.get("buurtcode") or "",
        "municipality_code": _gemeente_code(props.get("gemeentecode")),
    }


def _compose_address(doc: dict) -> str:
    street = doc.get("straatnaam") or ""
    number = f"{doc.get('huisnummer') or ''}{doc.get('huisletter') or ''}"
    suffix = doc.get("huisnummertoevoeging")
    if suffix:
        number = f"{number}-{suffix}"
    city = doc.get("woonplaatsnaam") or ""
    postcode = doc.get("postcode") or ""
    if not street:
        return ""
    return f"{street} {number}, {postcode} {city}".strip().rstrip(",")


def _gemeente_code(value) -> str:
    if not value:
        return ""
    text = str(value).strip()
    # StatLine and CBS region codes are GM-prefixed
    return text if text.upper().startswith("GM") else f"GM{text.zfill(4)}"
