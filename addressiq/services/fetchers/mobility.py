from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.schemas.sources import ParkingData, TrafficData
from addressiq.services.fetchers.client import AdapterParams, FetchContext, get_json


def fetch_traffic(ctx: FetchContext, settings: Settings, params: AdapterParams) -> list[TrafficData]:
    """NDW measurement points within ``params.radius``; NDW needs registration so unset means no points."""
    if not settings.ndw_traffic_api_url:
        return []
    try:
        payload = get_json(
            ctx,
            "NDW Traffic",
            f"{settings.ndw_traffic_api_url.rstrip('/')}/traffic",
            params={"lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}", "radius": params.radius},
        )
    except UpstreamError as exc:
        if exc.status is not None:
            return []
        raise
    rows = (payload or {}).get("data") or []
    return [TrafficData.model_validate(row) for row in rows]


def fetch_parking(ctx: FetchContext, settings: Settings, params: AdapterParams) -> ParkingData:
    if not settings.parking_api_url:
        return ParkingData()
    try:
        payload = get_json(
            ctx,
            "Parking",
            f"{settings.parking_api_url.rstrip('/')}/parking",
            params={"lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}", "radius": params.radius},
        )
    except UpstreamError:
        return ParkingData()
    return ParkingData.model_validate(payload or {})
