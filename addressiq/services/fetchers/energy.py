"""Altum energy label and sustainability lookups keyed by BAG id.

Both degrade to a neutral record when the provider is unset or misbehaves;
only a 404 for the building is reported as a failure.
"""

from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.sources import EnergyClimateData, SustainabilityData
from addressiq.services.fetchers.client import AdapterParams, FetchContext, bearer, get_json

logger = get_logger(__name__)


def fetch_energy_climate(ctx: FetchContext, settings: Settings, params: AdapterParams) -> EnergyClimateData:
    if not settings.altum_energy_api_url:
        return EnergyClimateData()
    try:
        payload = get_json(
            ctx,
            "Altum Energy",
            f"{settings.altum_energy_api_url.rstrip('/')}/energy/{params.bag_id}",
            headers=bearer(settings.altum_energy_api_key),
        )
    except UpstreamError as exc:
        if exc.status == 404:
            raise UpstreamError("Altum Energy", f"energy data not found for BAG ID: {params.bag_id}", 404) from exc
        logger.info("[Altum Energy] using default label: %s", exc)
        return EnergyClimateData()
    if not isinstance(payload, dict):
        return EnergyClimateData()
    return EnergyClimateData.model_validate(payload)


def fetch_sustainability(ctx: FetchContext, settings: Settings, params: AdapterParams) -> SustainabilityData:
    if not settings.altum_sustainability_api_url:
        return SustainabilityData()
    try:
        payload = get_json(
            ctx,
            "Altum Sustainability",
            f"{settings.altum_sustainability_api_url.rstrip('/')}/sustainability/{params.bag_id}",
            headers=bearer(settings.altum_sustainability_api_key),
        )
    except UpstreamError as exc:
        if exc.status == 404:
            raise UpstreamError(
                "Altum Sustainability", f"sustainability data not found for BAG ID: {params.bag_id}", 404
            ) from exc
        logger.info("[Altum Sustainability] using zero defaults: %s", exc)
        return SustainabilityData()
    if not isinstance(payload, dict):
        return SustainabilityData()
    return SustainabilityData.model_validate(payload)
