from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.sources import AirMeasurement, AirQualityData, NoisePollutionData
from addressiq.services.fetchers.client import AdapterParams, FetchContext, get_json, to_float

logger = get_logger(__name__)

NOISE_LIMIT_DB = 55.0


def fetch_air_quality(ctx: FetchContext, settings: Settings, params: AdapterParams) -> AirQualityData:
    """Latest Luchtmeetnet measurements at the nearest station.

    The AQI is derived from PM2.5 only; without a PM2.5 reading it stays at 50.
    """
    if not settings.luchtmeetnet_api_url:
        return AirQualityData()
    base = settings.luchtmeetnet_api_url.rstrip("/")
    try:
        stations = get_json(
            ctx,
            "Air Quality",
            f"{base}/stations",
            params={"lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}", "limit": "1"},
        )
    except UpstreamError as exc:
        logger.info("[Air Quality] station lookup failed: %s", exc)
        return AirQualityData()

    station_rows = (stations or {}).get("data") or []
    if not station_rows:
        return AirQualityData()
    station_id = str(station_rows[0].get("number") or "")
    station_name = station_rows[0].get("location") or ""

    try:
        measured = get_json(
            ctx,
            "Air Quality",
            f"{base}/stations/{station_id}/measurements",
            params={"order_by": "timestamp_measured", "order_direction": "desc", "limit": "25"},
        )
    except UpstreamError as exc:
        logger.info("[Air Quality] measurements failed for %s: %s", station_id, exc)
        return AirQualityData(station_id=station_id, station_name=station_name)

    measurements: list[AirMeasurement] = []
    last_updated = ""
    aqi, category = 50, "Good"
    for row in (measured or {}).get("data") or []:
        formula = row.get("formula") or ""
        value = to_float(row.get("value")) or 0.0
        last_updated = last_updated or row.get("timestamp_measured") or ""
        measurements.append(AirMeasurement(parameter=formula, value=value, unit="µg/m³"))
        if formula.upper() == "PM25" and value > 0:
            aqi, category = _pm25_index(value)

    return AirQualityData(
        station_id=station_id,
        station_name=station_name,
        measurements=measurements,
        aqi=aqi,
        category=category,
        last_updated=last_updated,
    )


def fetch_noise_pollution(ctx: FetchContext, settings: Settings, params: AdapterParams) -> NoisePollutionData:
    """Noise register lookup; a 404 means a quiet area (45 dB), other failures an 'Unknown' record."""
    if not settings.noise_pollution_api_url:
        return NoisePollutionData()
    try:
        payload = get_json(
            ctx,
            "Noise Register",
            f"{settings.noise_pollution_api_url.rstrip('/')}/noise",
            params={"lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}"},
        )
    except UpstreamError as exc:
        if exc.status == 404:
            return NoisePollutionData(total_noise=45.0, noise_category="Quiet")
        return NoisePollutionData()

    result = NoisePollutionData.model_validate(payload or {})
    result.noise_category = _noise_category(result.total_noise)
    result.exceeds_limit = result.total_noise > NOISE_LIMIT_DB
    return result


def _pm25_index(value: float) -> tuple[int, str]:
    if value <= 12:
        return int(value / 12.0 * 50), "Good"
    if value <= 35.4:
        return 51 + int((value - 12.1) / (35.4 - 12.1) * 49), "Moderate"
    return 101, "Unhealthy for Sensitive Groups"


def _noise_category(total_db: float) -> str:
    if total_db < 50:
        return "Quiet"
    if total_db < 55:
        return "Moderate"
    if total_db < 65:
        return "Loud"
    return "Very Loud"
