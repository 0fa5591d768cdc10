"""CBS neighbourhood statistics.

Population and square stats read the free PDOK wijken-en-buurten collection;
StatLine and the classic CBS feed go through OData.
"""

from __future__ import annotations

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.sources import (
    CBSData,
    PopulationData,
    PopulationDemographics,
    SquareStatsData,
    StatLineData,
)
from addressiq.services.fetchers.client import AdapterParams, FetchContext, get_json, require_url, to_float, to_int
from addressiq.utils.geo import bbox_param

logger = get_logger(__name__)

BUURT_BBOX_DELTA = 0.001
STATLINE_DATASET = "84286NED"
STATLINE_YEAR = 2024

_AGE_FIELDS = (
    ("0-14", "age0to14", "percentage_personen_0_tot_15_jaar"),
    ("15-24", "age15to24", "percentage_personen_15_tot_25_jaar"),
    ("25-44", "age25to44", "percentage_personen_25_tot_45_jaar"),
    ("45-64", "age45to64", "percentage_personen_45_tot_65_jaar"),
    ("65+", "age65plus", "percentage_personen_65_jaar_en_ouder"),
)


def _buurt_properties(ctx: FetchContext, source: str, base_url: str, params: AdapterParams) -> dict | None:
    try:
        payload = get_json(
            ctx,
            source,
            f"{base_url.rstrip('/')}/collections/buurten/items",
            params={"bbox": bbox_param(params.lat, params.lon, BUURT_BBOX_DELTA), "f": "json", "limit": "1"},
        )
    except UpstreamError as exc:
        logger.debug("[%s] %s", source, exc)
        return None
    features = (payload or {}).get("features") or []
    if not features:
        return None
    return features[0].get("properties") or {}


def _non_negative(value) -> int:
    # CBS marks suppressed values with negative sentinels
    parsed = to_int(value)
    return parsed if parsed is not None and parsed >= 0 else 0


def fetch_population(ctx: FetchContext, settings: Settings, params: AdapterParams) -> PopulationData:
    base = settings.cbs_population_api_url or settings.cbs_buurten_api_url
    props = _buurt_properties(ctx, "CBS Population", base, params)
    if props is None:
        return PopulationData()

    population = _non_negative(props.get("aantal_inwoners"))
    household_size = to_float(props.get("gemiddelde_huishoudsgrootte")) or 0.0
    distribution: dict[str, int] = {}
    demographics: dict[str, int] = {}
    for label, field, source_field in _AGE_FIELDS:
        share = to_int(props.get(source_field))
        count = population * share // 100 if population > 0 and share is not None else 0
        distribution[label] = count
        demographics[field] = count

    return PopulationData(
        total_population=population,
        age_distribution=distribution,
        households=_non_negative(props.get("aantal_huishoudens")),
        average_household_size=max(household_size, 0.0),
        demographics=PopulationDemographics(**demographics),
    )


def fetch_square_stats(ctx: FetchContext, settings: Settings, params: AdapterParams) -> SquareStatsData:
    base = settings.cbs_square_stats_api_url or settings.cbs_buurten_api_url
    props = _buurt_properties(ctx, "CBS Square Stats", base, params)
    if props is None:
        return SquareStatsData()
    return SquareStatsData(
        grid_id=props.get("buurtcode") or "",
        population=_non_negative(props.get("aantal_inwoners")),
        households=_non_negative(props.get("aantal_huishoudens")),
        average_woz=float(_non_negative(props.get("gemiddelde_woningwaarde"))),
        # Reported in hundreds of euros
        average_income=float(_non_negative(props.get("gemiddeld_gestandaardiseerd_inkomen_van_huishoudens")) * 100),
        housing_density=_non_negative(props.get("omgevingsadressendichtheid")),
    )


def fetch_statline(ctx: FetchContext, settings: Settings, params: AdapterParams) -> StatLineData:
    region = params.municipality_code
    default = StatLineData(region_code=region, region_name=region, year=STATLINE_YEAR)
    if not settings.cbs_statline_api_url:
        return default
    try:
        payload = get_json(
            ctx,
            "CBS StatLine",
            f"{settings.cbs_statline_api_url.rstrip('/')}/ODataFeed/v4/CBS/{STATLINE_DATASET}/Observations",
            params={"$filter": f"RegioS eq '{region}'", "$orderby": "Perioden desc", "$top": "1"},
        )
    except UpstreamError as exc:
        if exc.status is not None:
            return default
        raise

    rows = (payload or {}).get("value") or []
    if not rows:
        return default
    row = rows[0]
    return StatLineData(
        region_code=row.get("RegioS") or region,
        region_name=region,
        population=to_int(row.get("BevolkingAanHetBeginVanDePeriode_1")) or 0,
        average_income=to_float(row.get("GemiddeldInkomenPerInwoner_66")) or 0.0,
        employment_rate=100.0 - (to_float(row.get("PercentageWerkloosPerLeeftijdsklasse")) or 0.0),
        housing_stock=to_int(row.get("Woningvoorraad_31")) or 0,
        # StatLine reports WOZ in thousands of euros
        average_woz=(to_float(row.get("GemiddeldeWOZWaardeVanWoningen_35")) or 0.0) * 1000,
        year=STATLINE_YEAR,
    )


def fetch_cbs(ctx: FetchContext, settings: Settings, params: AdapterParams) -> CBSData:
    base = require_url(settings.cbs_api_url, "CBS")
    payload = get_json(
        ctx,
        "CBS",
        f"{base}/{STATLINE_DATASET}/WijkenEnBuurten",
        params={"$filter": f"WijkenEnBuurten eq '{params.neighborhood_code}'"},
    )
    rows = (payload or {}).get("value") or []
    if not rows:
        raise UpstreamError("CBS", f"no CBS data found for neighborhood {params.neighborhood_code}")
    row = rows[0]
    return CBSData(
        avg_income=(to_float(row.get("GemiddeldInkomenPerInkomensontvanger_68")) or 0.0) * 1000,
        population_density=to_float(row.get("Bevolkingsdichtheid_33")) or 0.0,
        avg_woz_value=(to_float(row.get("GemiddeldeWOZWaardeVanWoningen_35")) or 0.0) * 1000,
    )
