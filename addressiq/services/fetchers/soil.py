from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.schemas.sources import BROSoilMapData, SoilData, SoilQualityData, SubsidenceData
from addressiq.services.fetchers.client import (
    AdapterParams,
    FetchContext,
    bearer,
    get_json,
    require_url,
)


def _point(params: AdapterParams) -> dict[str, str]:
    return {"lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}"}


def fetch_wur_soil(ctx: FetchContext, settings: Settings, params: AdapterParams) -> SoilData:
    """WUR soil physicals. Access needs an agreement, so absence or errors give an 'Unknown' record."""
    if not settings.wur_soil_api_url:
        return SoilData()
    try:
        payload = get_json(ctx, "WUR Soil", f"{settings.wur_soil_api_url.rstrip('/')}/soil", params=_point(params))
    except UpstreamError:
        return SoilData()
    return SoilData.model_validate(payload or {})


def fetch_subsidence(ctx: FetchContext, settings: Settings, params: AdapterParams) -> SubsidenceData:
    if not settings.skygeo_subsidence_api_url:
        return SubsidenceData()
    try:
        payload = get_json(
            ctx,
            "SkyGeo",
            f"{settings.skygeo_subsidence_api_url.rstrip('/')}/subsidence",
            params=_point(params),
            headers=bearer(settings.skygeo_api_key),
        )
    except UpstreamError:
        return SubsidenceData()
    return SubsidenceData.model_validate(payload or {})


def fetch_soil_quality(ctx: FetchContext, settings: Settings, params: AdapterParams) -> SoilQualityData:
    base = require_url(settings.soil_quality_api_url, "Soil Quality")
    try:
        payload = get_json(ctx, "Soil Quality", f"{base}/soil-quality", params=_point(params))
    except UpstreamError as exc:
        # No registered contamination at this location
        if exc.status == 404:
            return SoilQualityData()
        raise
    return SoilQualityData.model_validate(payload or {})


def fetch_bro_soil_map(ctx: FetchContext, settings: Settings, params: AdapterParams) -> BROSoilMapData:
    if not settings.bro_soil_map_api_url:
        return BROSoilMapData()
    try:
        payload = get_json(
            ctx, "BRO", f"{settings.bro_soil_map_api_url.rstrip('/')}/bro/soil-map", params=_point(params)
        )
    except UpstreamError:
        return BROSoilMapData()
    return BROSoilMapData.model_validate(payload or {})
