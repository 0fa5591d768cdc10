from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.schemas.sources import (
    KadasterObjectInfo,
    MarketValuation,
    MonumentStatus,
    Transaction,
    TransactionHistory,
    WOZData,
)
from addressiq.services.fetchers.client import (
    AdapterParams,
    FetchContext,
    bearer,
    get_json,
    require_url,
    to_float,
    to_int,
)
from addressiq.utils.geo import bbox_param

MONUMENTEN_DEFAULT_URL = "https://api.pdok.nl/rce/beschermde-gebieden-cultuurhistorie/ogc/v1"
MONUMENT_BBOX_DELTA = 0.0005


def fetch_kadaster_info(ctx: FetchContext, settings: Settings, params: AdapterParams) -> KadasterObjectInfo:
    base = require_url(settings.kadaster_objectinfo_api_url, "Kadaster")
    headers = {"X-Api-Key": settings.kadaster_objectinfo_api_key} if settings.kadaster_objectinfo_api_key else {}
    try:
        payload = get_json(ctx, "Kadaster", f"{base}/objecten/{params.bag_id}", headers=headers)
    except UpstreamError as exc:
        if exc.status == 404:
            raise UpstreamError("Kadaster", f"property not found for BAG ID: {params.bag_id}", 404) from exc
        raise

    payload = payload or {}
    surface = payload.get("oppervlakte") or {}
    building = payload.get("gebouw") or {}
    return KadasterObjectInfo(
        owner_name=(payload.get("eigenaar") or {}).get("naam") or "",
        cadastral_reference=(payload.get("kadaster") or {}).get("referentie") or "",
        woz_value=to_float((payload.get("woz") or {}).get("waarde")) or 0.0,
        energy_label=(payload.get("energie") or {}).get("label") or "",
        municipal_taxes=to_float((payload.get("belastingen") or {}).get("gemeentelijk")) or 0.0,
        surface_area=to_float(surface.get("wonen")) or 0.0,
        plot_size=to_float(surface.get("perceel")) or 0.0,
        building_type=building.get("type") or "",
        build_year=to_int(building.get("bouwjaar")) or 0,
    )


def fetch_woz(ctx: FetchContext, settings: Settings, params: AdapterParams) -> WOZData:
    base = require_url(settings.altum_woz_api_url, "Altum WOZ")
    try:
        payload = get_json(ctx, "Altum WOZ", f"{base}/woz/{params.bag_id}", headers=bearer(settings.altum_woz_api_key))
    except UpstreamError as exc:
        if exc.status == 404:
            raise UpstreamError("Altum WOZ", f"WOZ data not found for BAG ID: {params.bag_id}", 404) from exc
        raise
    return WOZData.model_validate(payload or {})


def fetch_market_valuation(ctx: FetchContext, settings: Settings, params: AdapterParams) -> MarketValuation:
    base = require_url(settings.matrixian_api_url, "Matrixian")
    headers = {"X-API-Key": settings.matrixian_api_key} if settings.matrixian_api_key else {}
    try:
        payload = get_json(
            ctx,
            "Matrixian",
            f"{base}/property-value-plus",
            params={"bagId": params.bag_id, "lat": f"{params.lat:.6f}", "lon": f"{params.lon:.6f}"},
            headers=headers,
        )
    except UpstreamError as exc:
        if exc.status == 404:
            raise UpstreamError(
                "Matrixian", f"property value data not found for BAG ID: {params.bag_id}", 404
            ) from exc
        raise
    return MarketValuation.model_validate(payload or {})


def fetch_transactions(ctx: FetchContext, settings: Settings, params: AdapterParams) -> TransactionHistory:
    """Sale history, newest first. A 404 means no recorded sales and is not an error."""
    base = require_url(settings.altum_transaction_api_url, "Altum Transactions")
    try:
        payload = get_json(
            ctx,
            "Altum Transactions",
            f"{base}/transactions/{params.bag_id}",
            headers=bearer(settings.altum_transaction_api_key),
        )
    except UpstreamError as exc:
        if exc.status == 404:
            return TransactionHistory()
        raise

    payload = payload or {}
    transactions = [Transaction.model_validate(row) for row in payload.get("transactions") or []]
    transactions.sort(key=lambda row: row.date, reverse=True)
    return TransactionHistory(
        transactions=transactions,
        total_count=to_int(payload.get("totalCount")) or len(transactions),
    )


def fetch_monument_status(ctx: FetchContext, settings: Settings, params: AdapterParams) -> MonumentStatus:
    """Checks the RCE register for a monument within ~50 m; any upstream problem means 'not a monument'."""
    base = (settings.monumenten_api_url or MONUMENTEN_DEFAULT_URL).rstrip("/")
    try:
        payload = get_json(
            ctx,
            "Monument Register",
            f"{base}/collections/rce_inspire_points/items",
            params={"bbox": bbox_param(params.lat, params.lon, MONUMENT_BBOX_DELTA), "f": "json", "limit": "5"},
        )
    except UpstreamError:
        return MonumentStatus()

    features = (payload or {}).get("features") or []
    if not features:
        return MonumentStatus()
    props = features[0].get("properties") or {}
    return MonumentStatus(
        is_monument=True,
        type="Rijksmonument",
        name=props.get("text") or "",
        date=props.get("legal_foundation_date") or "",
    )
