from datetime import datetime, timezone

import pytest

from addressiq.schemas.property import PropertyRecord
from addressiq.schemas.sources import (
    AirQualityData,
    BuildingPermitsData,
    BuildingRights,
    EnergyClimateData,
    FacilitiesData,
    FloodRiskData,
    FuturePlan,
    GreenSpacesData,
    LandUseData,
    MarketValuation,
    NoisePollutionData,
    SafetyData,
    SoilQualityData,
    SubsidenceData,
    SustainabilityData,
    Transaction,
    TransactionHistory,
    WOZData,
)
from addressiq.services.scoring_service import compute_scores, energy_label_score, risk_level

RISK_LEVELS = {"Low", "Medium", "High", "Very High"}


def _record(**slots) -> PropertyRecord:
    return PropertyRecord(
        address="Teststraat 1, 3541ED Utrecht",
        coordinates=(5.1214, 52.0907),
        aggregated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        data_sources=["BAG"],
        **slots,
    )


def test_energy_label_b_only():
    scores = compute_scores(_record(energy_climate=EnergyClimateData(energy_label="B")))

    assert scores.breakdown.esg.energy_efficiency == 75
    # 0.20*75 + 0.15*100 + 0.15*0 + 0.15*(0.6*75) + 0.10*70*3 + 0.05*50
    assert scores.esg_score == pytest.approx(60.25, abs=0.01)


def test_empty_record_uses_neutral_defaults():
    scores = compute_scores(_record())

    esg = scores.breakdown.esg
    assert esg.energy_efficiency == 50
    assert esg.flood_risk == 70
    assert esg.air_quality == 70
    assert esg.noise_level == 70
    assert esg.green_space_access == 50
    assert esg.social_livability == 0
    assert scores.breakdown.profit.rental_yield == 0
    assert scores.risk_level == "Low"


def test_very_high_risk():
    record = _record(
        flood_risk=FloodRiskData(risk_level="Very High"),
        soil_quality=SoilQualityData(contamination_level="Severe"),
        subsidence=SubsidenceData(stability_rating="High risk"),
    )

    assert risk_level(record) == "Very High"
    scores = compute_scores(record)
    assert scores.risk_level == "Very High"
    assert scores.breakdown.esg.environmental_risk == 30
    assert "High flood risk - ensure comprehensive insurance coverage" in scores.recommendations


@pytest.mark.parametrize(
    "label, expected",
    [("C", 65), ("D", 65), ("E", 85), ("G", 85), ("A", 30), ("A++", 30), ("Unknown", 30), ("", 30)],
)
def test_renovation_roi_by_label(label, expected):
    scores = compute_scores(_record(energy_climate=EnergyClimateData(energy_label=label)))
    assert scores.breakdown.opportunity.renovation_roi == expected


def test_renovation_roi_without_energy_data_is_neutral():
    assert compute_scores(_record()).breakdown.opportunity.renovation_roi == 50


def test_energy_label_score_is_case_insensitive():
    assert energy_label_score(" a+++ ") == 95
    assert energy_label_score(None) == 50


def test_price_appreciation_uses_oldest_transaction():
    record = _record(
        woz_data=WOZData(woz_value=300000),
        market_valuation=MarketValuation(market_value=360000),
        transaction_history=TransactionHistory(
            transactions=[
                Transaction(date="2020-01-01", purchase_price=320000),
                Transaction(date="2010-01-01", purchase_price=300000),
            ]
        ),
    )
    profit = compute_scores(record).breakdown.profit

    assert profit.current_value == 300000
    assert profit.market_value == 360000
    # 20% gain doubled
    assert profit.price_appreciation == pytest.approx(40)
    assert profit.rental_yield == 4.0


def test_green_space_bonus_requires_nearby_park():
    near = compute_scores(_record(green_spaces=GreenSpacesData(green_percentage=30, park_distance=250)))
    none = compute_scores(_record(green_spaces=GreenSpacesData(green_percentage=30, park_distance=0)))

    assert near.breakdown.esg.green_space_access == 50
    assert none.breakdown.esg.green_space_access == 30


def test_recommendation_order():
    record = _record(
        energy_climate=EnergyClimateData(energy_label="F"),
        sustainability=SustainabilityData(total_cost_savings=1500, payback_period=4),
        land_use=LandUseData(building_rights=BuildingRights(can_expand=True, can_subdivide=True)),
    )
    recommendations = compute_scores(record).recommendations

    assert recommendations[0].startswith("Consider energy efficiency improvements")
    assert recommendations[1] == "Energy upgrades could save €1500/year"
    assert recommendations[2].startswith("Property has significant development potential")
    assert recommendations[-1].startswith("High ROI potential for renovations")


def test_composites_stay_in_bounds_for_extreme_inputs():
    record = _record(
        energy_climate=EnergyClimateData(energy_label="A++++"),
        safety=SafetyData(safety_score=100),
        facilities=FacilitiesData(amenities_score=100),
        air_quality=AirQualityData(aqi=500),
        noise_pollution=NoisePollutionData(total_noise=90),
        green_spaces=GreenSpacesData(green_percentage=95, park_distance=10),
        building_permits=BuildingPermitsData(new_construction=5000, growth_trend="Increasing"),
        land_use=LandUseData(
            building_rights=BuildingRights(can_expand=True, can_subdivide=True),
            future_plans=[FuturePlan(status="Approved", impact="Positive")] * 6,
        ),
    )
    scores = compute_scores(record)

    for value in (scores.esg_score, scores.profit_score, scores.opportunity_score, scores.overall_score):
        assert 0 <= value <= 100
        assert value == round(value, 2)
    assert scores.breakdown.esg.air_quality == 0
    assert scores.breakdown.opportunity.neighborhood_growth == 100
    assert scores.breakdown.opportunity.future_development == 100
    assert scores.risk_level in RISK_LEVELS
