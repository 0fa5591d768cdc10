"""Open-Meteo style weather and solar lookups.

Both adapters soft-fail: an unset URL or any upstream problem yields an empty
record, since weather never decides whether a property is worth looking at.
"""

from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.sources import HistoricalValue, SolarData, WeatherData
from addressiq.services.fetchers.client import AdapterParams, FetchContext, get_json, to_float

logger = get_logger(__name__)

FORECAST_POINTS = 6


def fetch_weather(ctx: FetchContext, settings: Settings, params: AdapterParams) -> WeatherData:
    if not settings.knmi_weather_api_url:
        return WeatherData()
    try:
        payload = get_json(
            ctx,
            "KNMI Weather",
            settings.knmi_weather_api_url,
            params={
                "latitude": f"{params.lat:.6f}",
                "longitude": f"{params.lon:.6f}",
                "current_weather": "true",
                "hourly": "precipitation,relativehumidity_2m,pressure_msl",
                "timezone": "Europe/Amsterdam",
            },
        )
    except UpstreamError as exc:
        logger.info("[KNMI Weather] falling back to empty record: %s", exc)
        return WeatherData()

    payload = payload or {}
    current = payload.get("current_weather") or {}
    hourly = payload.get("hourly") or {}
    times = hourly.get("time") or []
    precipitation = [to_float(v) or 0.0 for v in hourly.get("precipitation") or []]
    humidity = hourly.get("relativehumidity_2m") or []
    pressure = hourly.get("pressure_msl") or []

    return WeatherData(
        temperature=to_float(current.get("temperature")) or 0.0,
        wind_speed=to_float(current.get("windspeed")) or 0.0,
        wind_direction=int(to_float(current.get("winddirection")) or 0),
        humidity=to_float(humidity[0]) or 0.0 if humidity else 0.0,
        pressure=to_float(pressure[0]) or 0.0 if pressure else 0.0,
        precipitation=precipitation[0] if precipitation else 0.0,
        last_updated=current.get("time") or "",
        rainfall_forecast=precipitation[:FORECAST_POINTS],
        historical_rainfall=[
            HistoricalValue(date=moment, value=value)
            for moment, value in list(zip(times, precipitation))[:FORECAST_POINTS]
        ],
    )


def fetch_solar(ctx: FetchContext, settings: Settings, params: AdapterParams) -> SolarData:
    if not settings.knmi_solar_api_url:
        return SolarData()
    try:
        payload = get_json(
            ctx,
            "KNMI Solar",
            settings.knmi_solar_api_url,
            params={
                "latitude": f"{params.lat:.6f}",
                "longitude": f"{params.lon:.6f}",
                "hourly": "shortwave_radiation",
                "daily": "sunshine_duration,uv_index_max",
                "timezone": "Europe/Amsterdam",
            },
        )
    except UpstreamError as exc:
        logger.info("[KNMI Solar] falling back to empty record: %s", exc)
        return SolarData()

    payload = payload or {}
    hourly = payload.get("hourly") or {}
    daily = payload.get("daily") or {}
    times = hourly.get("time") or []
    radiation = [to_float(v) or 0.0 for v in hourly.get("shortwave_radiation") or []]
    sunshine = daily.get("sunshine_duration") or []
    uv = daily.get("uv_index_max") or []

    return SolarData(
        solar_radiation=radiation[0] if radiation else 0.0,
        # sunshine_duration is reported in seconds
        sunshine_hours=(to_float(sunshine[0]) or 0.0) / 3600.0 if sunshine else 0.0,
        uv_index=to_float(uv[0]) or 0.0 if uv else 0.0,
        date=times[0] if times else "",
        historical=[
            HistoricalValue(date=moment, value=value)
            for moment, value in list(zip(times, radiation))[:FORECAST_POINTS]
        ],
    )
