import re

from fastapi import APIRouter, Depends, Form, HTTPException, Query
from fastapi.responses import HTMLResponse

from addressiq.api.deps import get_aggregator
from addressiq.core.errors import AddressNotFound
from addressiq.core.logging import get_logger
from addressiq.services.aggregator import PropertyAggregator
from addressiq.services.search_results import (
    build_search_response,
    legacy_search_html,
    not_found_html,
    result_count,
)

logger = get_logger(__name__)

router = APIRouter()


def split_address(address: str) -> tuple[str, str]:
    """Splits ``"3541ED 53"`` or ``"3541ED+53"`` into postcode and house number."""
    parts = re.split(r"[+\s]+", address.strip())
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise HTTPException(status_code=400, detail="invalid address format, expected: postcode houseNumber")
    return parts[0], parts[1]


@router.get("", response_class=HTMLResponse)
def search_by_address(
    address: str | None = Query(default=None),
    aggregator: PropertyAggregator = Depends(get_aggregator),
) -> HTMLResponse:
    if not address:
        raise HTTPException(status_code=400, detail="missing address parameter")
    postcode, house_number = split_address(address)
    return _search(aggregator, postcode, house_number)


@router.post("", response_class=HTMLResponse)
def search_by_form(
    postcode: str = Form(default=""),
    house_number: str = Form(default="", alias="houseNumber"),
    aggregator: PropertyAggregator = Depends(get_aggregator),
) -> HTMLResponse:
    if not postcode.strip() or not house_number.strip():
        raise HTTPException(status_code=400, detail="missing postcode or houseNumber")
    return _search(aggregator, postcode, house_number)


def _search(aggregator: PropertyAggregator, postcode: str, house_number: str) -> HTMLResponse:
    logger.info("comprehensive search for %s %s", postcode, house_number)
    try:
        record = aggregator.aggregate(postcode, house_number)
    except AddressNotFound as exc:
        logger.info("no address found for %s %s: %s", postcode, house_number, exc)
        return HTMLResponse(not_found_html(postcode, house_number), status_code=404)

    response = build_search_response(record, aggregator.registry)
    logger.info("found address: %s with %d API results", record.address, result_count(response))
    return HTMLResponse(legacy_search_html(record, postcode, house_number, response))
