from __future__ import annotations

from typing import Callable

from addressiq.core.config import Settings
from addressiq.core.errors import AddressNotFound, UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.property import ResolvedAddress
from addressiq.services.cache import normalize_house_number, normalize_postcode
from addressiq.services.fetchers import bag
from addressiq.services.fetchers.client import FetchContext
from addressiq.utils.geo import point_geojson

logger = get_logger(__name__)

Resolver = Callable[[FetchContext, Settings, str, str], ResolvedAddress]


def resolve_address(ctx: FetchContext, settings: Settings, postcode: str, house_number: str) -> ResolvedAddress:
    """Turns a postcode and house number into coordinates, a BAG id and region codes.

    Raises AddressNotFound when the address lookup fails or finds nothing. A
    failing region lookup only leaves the neighbourhood code empty.
    """
    postcode = normalize_postcode(postcode)
    house_number = normalize_house_number(house_number)
    if not postcode or not house_number:
        raise AddressNotFound(postcode, house_number, "postcode and house number are required")

    try:
        found = bag.lookup_address(ctx, settings, postcode, house_number)
    except UpstreamError as exc:
        raise AddressNotFound(postcode, house_number, str(exc)) from exc
    if not found or not found.get("address"):
        raise AddressNotFound(postcode, house_number)

    lat = float(found["lat"])
    lon = float(found["lon"])
    municipality_code = str(found.get("municipality_code") or "")
    neighborhood_code = ""
    try:
        region = bag.lookup_region(ctx, settings, lat, lon)
    except UpstreamError as exc:
        logger.info("[BAG] region lookup failed for %s %s: %s", postcode, house_number, exc)
    else:
        neighborhood_code = region.get("neighborhood_code") or ""
        municipality_code = region.get("municipality_code") or municipality_code

    return ResolvedAddress(
        postcode=postcode,
        house_number=house_number,
        address=str(found["address"]),
        lat=lat,
        lon=lon,
        bag_id=str(found.get("bag_id") or ""),
        municipality_code=municipality_code,
        neighborhood_code=neighborhood_code,
        geojson=str(found.get("geojson") or point_geojson(lat, lon)),
    )
