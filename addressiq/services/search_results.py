"""Views of a sealed record for the search UI: grouped API results and the HTML header fragment."""

from __future__ import annotations

from html import escape

from addressiq.core.data_sources import ADAPTERS, AdapterSpec
from addressiq.schemas.property import PropertyRecord
from addressiq.schemas.search import APIResult, APIResultsGrouped, ComprehensiveSearchResponse
from addressiq.services.aggregator import dump_data

RESOLVER_DISPLAY_NAME = "BAG Address"
TIERS = ("free", "freemium", "premium")

_STREAM_BUTTONS = (
    ("button is-small glass-liquid", "exportCSV()", "Export CSV"),
    ("button is-small glass-liquid", "refreshData()", "Refresh"),
    ("button is-small glass-liquid", "openSettings()", "Settings"),
)
_LEGACY_BUTTONS = (
    ("button is-success is-small is-fullwidth", "exportCSV()", "Export CSV"),
    ("button is-info is-small is-fullwidth", "openSettings()", "Settings"),
)


def build_api_results(
    record: PropertyRecord, registry: tuple[AdapterSpec, ...] = ADAPTERS
) -> APIResultsGrouped:
    grouped: dict[str, list[APIResult]] = {tier: [] for tier in TIERS}
    grouped["free"].append(
        APIResult(
            name=RESOLVER_DISPLAY_NAME,
            status="success",
            data={"address": record.address, "coordinates": list(record.coordinates)},
            category="free",
        )
    )

    for spec in registry:
        grouped.setdefault(spec.tier, []).append(_api_result(record, spec))

    return APIResultsGrouped(free=grouped["free"], freemium=grouped["freemium"], premium=grouped["premium"])


def _api_result(record: PropertyRecord, spec: AdapterSpec) -> APIResult:
    value = getattr(record, spec.slot, None)
    if value is not None and spec.name in record.data_sources:
        return APIResult(name=spec.display_name, status="success", data=dump_data(value), category=spec.tier)
    if spec.name in record.errors:
        return APIResult(
            name=spec.display_name, status="error", error=record.errors[spec.name], category=spec.tier
        )
    reason = "API key not configured" if spec.credential else "No data available for this address"
    return APIResult(name=spec.display_name, status="not_configured", error=reason, category=spec.tier)


def build_search_response(
    record: PropertyRecord, registry: tuple[AdapterSpec, ...] = ADAPTERS
) -> ComprehensiveSearchResponse:
    return ComprehensiveSearchResponse(
        address=record.address,
        coordinates=record.coordinates,
        geojson=record.geojson,
        apiResults=build_api_results(record, registry),
        aiSummary=record.ai_summary,
    )


def result_count(response: ComprehensiveSearchResponse) -> int:
    results = response.apiResults
    return len(results.free) + len(results.freemium) + len(results.premium)


def header_html(record: PropertyRecord, postcode: str, house_number: str) -> str:
    """Header fragment sent as the ``complete`` event of the search stream."""
    return _render_header(record, postcode, house_number, _STREAM_BUTTONS, "address-buttons mt-3")


def legacy_search_html(
    record: PropertyRecord,
    postcode: str,
    house_number: str,
    response: ComprehensiveSearchResponse,
) -> str:
    """Full ``/search`` fragment; the response JSON rides along in a hidden data attribute."""
    response_json = response.model_dump_json()
    return _render_header(
        record,
        postcode,
        house_number,
        _LEGACY_BUTTONS,
        "buttons mt-3",
        extra_attrs=f" data-response='{escape(response_json)}'",
    )


def not_found_html(postcode: str, house_number: str) -> str:
    return (
        '<div class="notification is-warning">'
        f"No address found for {escape(postcode)} {escape(house_number)}"
        "</div>"
    )


def _render_header(
    record: PropertyRecord,
    postcode: str,
    house_number: str,
    buttons: tuple[tuple[str, str, str], ...],
    buttons_class: str,
    extra_attrs: str = "",
) -> str:
    button_html = "\n".join(
        f'            <button class="{css}" onclick="{action}">{label}</button>'
        for css, action, label in buttons
    )
    return f"""
<div data-target="header">
    <div class="box">
        <h5 class="title is-5">{escape(record.address)}</h5>
        <p class="is-size-6"><strong>Coordinates:</strong> {record.lat:.6f}, {record.lon:.6f}</p>
        <p class="is-size-6"><strong>Postcode:</strong> {escape(postcode)} | <strong>House Number:</strong> {escape(house_number)}</p>
        <div class="{buttons_class}">
{button_html}
        </div>
    </div>
</div>
<div data-target="results">
</div>
<div data-geojson='{escape(record.geojson)}'{extra_attrs} style="display:none;"></div>"""

