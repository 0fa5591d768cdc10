from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.sources import FloodRiskData, SafetyData, SchipholFlightData, WaterQualityData
from addressiq.services.fetchers.client import AdapterParams, FetchContext, get_json, require_url
from addressiq.utils.geo import bbox_param

logger = get_logger(__name__)

FLOOD_RISK_DEFAULT_URL = "https://api.pdok.nl/rws/overstromingen-risicogebied/ogc/v1"
FLOOD_BBOX_DELTA = 0.005


def _point(params: AdapterParams) -> dict[str, str]:
    return {"lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}"}


def fetch_flood_risk(ctx: FetchContext, settings: Settings, params: AdapterParams) -> FloodRiskData:
    """Rijkswaterstaat risk zones within ~500 m.

    No zone means a protected location. An HTTP error status is read as 'Low'
    since most of the country sits behind dikes; a transport failure is 'Unknown'.
    """
    base = (settings.flood_risk_api_url or FLOOD_RISK_DEFAULT_URL).rstrip("/")
    try:
        payload = get_json(
            ctx,
            "Flood Risk",
            f"{base}/collections/risk_zone/items",
            params={"bbox": bbox_param(params.lat, params.lon, FLOOD_BBOX_DELTA), "f": "json", "limit": "5"},
        )
    except UpstreamError as exc:
        logger.debug("[Flood Risk] %s", exc)
        return FloodRiskData(risk_level="Low" if exc.status else "Unknown")

    features = (payload or {}).get("features") or []
    if not features:
        return FloodRiskData(risk_level="Low", flood_probability=0.01, flood_zone="Protected", dike_quality="Good")

    props = features[0].get("properties") or {}
    qualitative = props.get("qualitative_value") or ""
    description = props.get("description") or ""
    risk_level, probability = _classify_zone(qualitative.lower())
    if "beschermd" in description.lower() and risk_level == "High":
        risk_level, probability = "Medium", 0.1

    return FloodRiskData(
        risk_level=risk_level,
        flood_probability=probability,
        flood_zone=description or qualitative,
        dike_quality="Good",
    )


def _classify_zone(qualitative: str) -> tuple[str, float]:
    if "potential significant" in qualitative:
        return "Medium", 0.1
    if "high" in qualitative or "significant" in qualitative:
        return "High", 1.0
    if "low" in qualitative or "minor" in qualitative:
        return "Low", 0.01
    return "Medium", 0.1


def fetch_water_quality(ctx: FetchContext, settings: Settings, params: AdapterParams) -> WaterQualityData:
    base = require_url(settings.digital_delta_api_url, "Digital Delta")
    headers = {"X-Api-Key": settings.digital_delta_api_key} if settings.digital_delta_api_key else {}
    try:
        payload = get_json(ctx, "Digital Delta", f"{base}/water-quality", params=_point(params), headers=headers)
    except UpstreamError as exc:
        # No water body nearby
        if exc.status == 404:
            return WaterQualityData(water_quality="N/A", distance=9999)
        raise
    return WaterQualityData.model_validate(payload or {})


def fetch_safety(ctx: FetchContext, settings: Settings, params: AdapterParams) -> SafetyData:
    base = require_url(settings.safety_experience_api_url, "CBS Safety")
    headers = {"X-Api-Key": settings.cbs_api_key} if settings.cbs_api_key else {}
    try:
        payload = get_json(
            ctx, "CBS Safety", f"{base}/safety", params={"neighborhood": params.neighborhood_code}, headers=headers
        )
    except UpstreamError as exc:
        if exc.status == 404:
            return SafetyData(safety_score=70.0, safety_perception="Moderate")
        raise
    result = SafetyData.model_validate(payload or {})
    result.safety_perception = _perception(result.safety_score)
    return result


def _perception(score: float) -> str:
    if score >= 80:
        return "Very Safe"
    if score >= 60:
        return "Safe"
    if score >= 40:
        return "Moderate"
    return "Unsafe"


def fetch_schiphol_flights(ctx: FetchContext, settings: Settings, params: AdapterParams) -> SchipholFlightData:
    base = require_url(settings.schiphol_api_url, "Schiphol")
    headers: dict[str, str] = {}
    if settings.schiphol_api_key:
        headers = {
            "ResourceVersion": "v4",
            "app_id": settings.schiphol_app_id or "",
            "app_key": settings.schiphol_api_key,
        }
    try:
        payload = get_json(ctx, "Schiphol", f"{base}/noise-impact", params=_point(params), headers=headers)
    except UpstreamError as exc:
        # Outside the Schiphol noise contours
        if exc.status == 404:
            return SchipholFlightData()
        raise
    return SchipholFlightData.model_validate(payload or {})
