from fastapi import APIRouter, Depends, HTTPException, Query

from addressiq.api.deps import get_aggregator
from addressiq.core.logging import get_logger
from addressiq.schemas.property import PropertyRecord, PropertyResponse
from addressiq.schemas.scores import AnalysisResponse, RecommendationsResponse, ScoresResponse
from addressiq.services.aggregator import PropertyAggregator
from addressiq.services.scoring_service import compute_scores

logger = get_logger(__name__)

router = APIRouter()


def _aggregate(aggregator: PropertyAggregator, postcode: str | None, house_number: str | None) -> PropertyRecord:
    if not postcode or not postcode.strip() or not house_number or not house_number.strip():
        raise HTTPException(status_code=400, detail="missing postcode or houseNumber query parameters")
    # AddressNotFound is rendered as 404 by the app-level handler
    return aggregator.aggregate(postcode, house_number)


@router.get("", response_model=PropertyResponse)
def get_property(
    postcode: str | None = Query(default=None),
    house_number: str | None = Query(default=None, alias="houseNumber"),
    aggregator: PropertyAggregator = Depends(get_aggregator),
) -> PropertyResponse:
    record = _aggregate(aggregator, postcode, house_number)
    return PropertyResponse(property=record)


@router.get("/scores", response_model=ScoresResponse)
def get_scores(
    postcode: str | None = Query(default=None),
    house_number: str | None = Query(default=None, alias="houseNumber"),
    aggregator: PropertyAggregator = Depends(get_aggregator),
) -> ScoresResponse:
    record = _aggregate(aggregator, postcode, house_number)
    return ScoresResponse(postcode=postcode, house_number=house_number, scores=compute_scores(record))


@router.get("/recommendations", response_model=RecommendationsResponse)
def get_recommendations(
    postcode: str | None = Query(default=None),
    house_number: str | None = Query(default=None, alias="houseNumber"),
    aggregator: PropertyAggregator = Depends(get_aggregator),
) -> RecommendationsResponse:
    record = _aggregate(aggregator, postcode, house_number)
    scores = compute_scores(record)
    return RecommendationsResponse(
        postcode=postcode, house_number=house_number, recommendations=scores.recommendations
    )


@router.get("/analysis", response_model=AnalysisResponse)
def get_analysis(
    postcode: str | None = Query(default=None),
    house_number: str | None = Query(default=None, alias="houseNumber"),
    aggregator: PropertyAggregator = Depends(get_aggregator),
) -> AnalysisResponse:
    record = _aggregate(aggregator, postcode, house_number)
    scores = compute_scores(record)
    logger.info(
        "analysis for %s %s: overall %.2f, risk %s", postcode, house_number, scores.overall_score, scores.risk_level
    )
    return AnalysisResponse(postcode=postcode, house_number=house_number, property=record, scores=scores)
