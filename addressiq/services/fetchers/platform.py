from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.schemas.sources import LandUseData, PDOKPlatformData, StratopoEnvironmentData
from addressiq.services.fetchers.client import AdapterParams, FetchContext, bearer, get_json, require_url


def _point(params: AdapterParams) -> dict[str, str]:
    return {"lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}"}


def fetch_pdok_platform(ctx: FetchContext, settings: Settings, params: AdapterParams) -> PDOKPlatformData:
    base = require_url(settings.pdok_api_url, "PDOK Platform")
    payload = get_json(ctx, "PDOK Platform", f"{base}/comprehensive", params=_point(params))
    return PDOKPlatformData.model_validate(payload or {})


def fetch_stratopo_environment(
    ctx: FetchContext, settings: Settings, params: AdapterParams
) -> StratopoEnvironmentData:
    base = require_url(settings.stratopo_api_url, "Stratopo")
    payload = get_json(
        ctx, "Stratopo", f"{base}/environment", params=_point(params), headers=bearer(settings.stratopo_api_key)
    )
    return StratopoEnvironmentData.model_validate(payload or {})


def fetch_land_use(ctx: FetchContext, settings: Settings, params: AdapterParams) -> LandUseData:
    base = require_url(settings.land_use_api_url, "Land Use")
    payload = get_json(ctx, "Land Use", f"{base}/land-use", params=_point(params))
    return LandUseData.model_validate(payload or {})
