from addressiq.schemas.property import PropertyRecord
from addressiq.schemas.scores import (
    ESGBreakdown,
    OpportunityBreakdown,
    ProfitBreakdown,
    PropertyScores,
    ScoreBreakdown,
)

ENERGY_LABEL_SCORES = {
    "A++++": 95.0,
    "A+++": 95.0,
    "A++": 95.0,
    "A+": 95.0,
    "A": 85.0,
    "B": 75.0,
    "C": 60.0,
    "D": 45.0,
    "E": 30.0,
    "F": 20.0,
    "G": 10.0,
}
FLOOD_RISK_SCORES = {"Low": 90.0, "Medium": 60.0, "High": 30.0, "Very High": 10.0}
CAPITAL_GROWTH_SCORES = {"Increasing": 80.0, "Stable": 60.0, "Decreasing": 30.0}
FIXED_RENTAL_YIELD_PCT = 4.0


def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def energy_label_score(label: str | None) -> float:
    return ENERGY_LABEL_SCORES.get((label or "").strip().upper(), 50.0)


def compute_scores(record: PropertyRecord) -> PropertyScores:
    """Scores a sealed record. Missing slots fall back to neutral values, so this never raises."""
    esg_score, esg = _esg(record)
    profit_score, profit = _profit(record)
    opportunity_score, opportunity = _opportunity(record)
    overall = clamp_score(0.3 * esg_score + 0.4 * profit_score + 0.3 * opportunity_score)

    scores = PropertyScores(
        esg_score=round(esg_score, 2),
        profit_score=round(profit_score, 2),
        opportunity_score=round(opportunity_score, 2),
        overall_score=round(overall, 2),
        risk_level=risk_level(record),
        breakdown=ScoreBreakdown(esg=esg, profit=profit, opportunity=opportunity),
    )
    scores.recommendations = recommendations(record, scores)
    return scores


def _esg(record: PropertyRecord) -> tuple[float, ESGBreakdown]:
    energy = energy_label_score(record.energy_climate.energy_label) if record.energy_climate else 50.0

    environmental = 100.0
    if record.soil_quality is not None:
        if record.soil_quality.contamination_level == "Severe":
            environmental -= 40
        elif record.soil_quality.contamination_level == "Moderate":
            environmental -= 20
    if record.subsidence is not None and record.subsidence.stability_rating == "High risk":
        environmental -= 30

    livability = 0.0
    if record.safety is not None:
        livability += 0.4 * record.safety.safety_score
    if record.facilities is not None:
        livability += 0.3 * record.facilities.amenities_score
    if record.education is not None:
        # Quality is on a 0-10 scale
        livability += 3.0 * record.education.average_quality

    sustainability = 0.6 * energy
    if record.solar_potential is not None and record.solar_potential.solar_radiation > 0:
        sustainability += 0.4 * min(100.0, record.solar_potential.solar_radiation / 600.0 * 100)

    flood = 70.0
    if record.flood_risk is not None:
        flood = FLOOD_RISK_SCORES.get(record.flood_risk.risk_level, 70.0)

    air = 70.0
    if record.air_quality is not None:
        air = max(0.0, 100 - 0.8 * record.air_quality.aqi)

    noise = 70.0
    if record.noise_pollution is not None:
        noise = _noise_score(record.noise_pollution.total_noise)

    green = 50.0
    if record.green_spaces is not None:
        green = record.green_spaces.green_percentage
        if 0 < record.green_spaces.park_distance < 500:
            green += 20

    breakdown = ESGBreakdown(
        energy_efficiency=clamp_score(energy),
        environmental_risk=clamp_score(environmental),
        social_livability=clamp_score(livability),
        sustainability=clamp_score(sustainability),
        flood_risk=flood,
        air_quality=clamp_score(air),
        noise_level=noise,
        green_space_access=clamp_score(green),
    )
    score = (
        breakdown.energy_efficiency * 0.20
        + breakdown.environmental_risk * 0.15
        + breakdown.social_livability * 0.15
        + breakdown.sustainability * 0.15
        + breakdown.flood_risk * 0.10
        + breakdown.air_quality * 0.10
        + breakdown.noise_level * 0.10
        + breakdown.green_space_access * 0.05
    )
    return clamp_score(score), breakdown


def _noise_score(total_db: float) -> float:
    if total_db < 50:
        return 100.0
    if total_db < 55:
        return 80.0
    if total_db < 60:
        return 60.0
    if total_db < 65:
        return 40.0
    return 20.0


def _profit(record: PropertyRecord) -> tuple[float, ProfitBreakdown]:
    current_value = 0.0
    if record.woz_data is not None:
        current_value = record.woz_data.woz_value
    elif record.kadaster_info is not None:
        current_value = record.kadaster_info.woz_value

    market_value = current_value
    if record.market_valuation is not None:
        market_value = record.market_valuation.market_value

    appreciation = 50.0
    transactions = record.transaction_history.transactions if record.transaction_history else []
    if transactions:
        # Transactions are ordered newest first
        first_price = transactions[-1].purchase_price
        latest_price = market_value if market_value > 0 else transactions[0].purchase_price
        if first_price > 0 and latest_price > first_price:
            gain_pct = (latest_price - first_price) / first_price * 100
            appreciation = clamp_score(2 * gain_pct)

    rental_yield = FIXED_RENTAL_YIELD_PCT if market_value > 0 else 0.0

    demand = 50.0
    if record.population is not None and record.population.total_population > 10000:
        demand += 20
    if record.building_permits is not None and record.building_permits.growth_trend == "Increasing":
        demand += 20
    if record.stat_line_data is not None and record.stat_line_data.employment_rate > 75:
        demand += 10

    liquidity = 50.0
    if record.public_transport is not None and len(record.public_transport.nearest_stops) >= 3:
        liquidity += 15
    if record.facilities is not None and record.facilities.amenities_score > 70:
        liquidity += 20
    if record.stat_line_data is not None and record.stat_line_data.average_income > 40000:
        liquidity += 15

    growth = 50.0
    if record.building_permits is not None:
        growth = CAPITAL_GROWTH_SCORES.get(record.building_permits.growth_trend, 50.0)

    breakdown = ProfitBreakdown(
        current_value=current_value,
        market_value=market_value,
        price_appreciation=appreciation,
        rental_yield=rental_yield,
        market_demand=clamp_score(demand),
        liquidity_score=clamp_score(liquidity),
        capital_growth=growth,
    )
    score = (
        breakdown.price_appreciation * 0.25
        + breakdown.market_demand * 0.25
        + breakdown.liquidity_score * 0.20
        + breakdown.capital_growth * 0.20
        + clamp_score(breakdown.rental_yield * 10) * 0.10
    )
    return clamp_score(score), breakdown


def _opportunity(record: PropertyRecord) -> tuple[float, OpportunityBreakdown]:
    development = 50.0
    if record.land_use is not None:
        rights = record.land_use.building_rights
        if rights.can_expand:
            development += 25
        if rights.can_subdivide:
            development += 25

    renovation = 50.0
    if record.energy_climate is not None:
        label = (record.energy_climate.energy_label or "").strip().upper()
        if label in ("E", "F", "G"):
            renovation = 85.0
        elif label in ("C", "D"):
            renovation = 65.0
        else:
            renovation = 30.0

    upgrade = 50.0
    if record.sustainability is not None:
        payback = record.sustainability.payback_period
        if 0 < payback < 10:
            upgrade = 100 - 10 * payback
        elif payback >= 10:
            upgrade = 30.0

    neighborhood = 50.0
    if record.building_permits is not None:
        neighborhood = record.building_permits.new_construction / 10.0
        if record.building_permits.growth_trend == "Increasing":
            neighborhood += 30
    if record.stat_line_data is not None and record.stat_line_data.population > 50000:
        neighborhood += 10

    accessibility = 50.0
    if record.public_transport is not None:
        accessibility = 50 + 10 * len(record.public_transport.nearest_stops)
    if record.traffic_data:
        avg_speed = sum(row.average_speed for row in record.traffic_data) / len(record.traffic_data)
        if avg_speed > 40:
            accessibility += 10

    amenities = record.facilities.amenities_score if record.facilities is not None else 50.0

    future = 50.0
    if record.land_use is not None:
        for plan in record.land_use.future_plans:
            if plan.status == "Approved" and plan.impact == "Positive":
                future += 15

    breakdown = OpportunityBreakdown(
        development_potential=clamp_score(development),
        renovation_roi=renovation,
        energy_upgrade_roi=clamp_score(upgrade),
        neighborhood_growth=clamp_score(neighborhood),
        accessibility=clamp_score(accessibility),
        amenities_score=clamp_score(amenities),
        future_development=clamp_score(future),
    )
    score = (
        breakdown.development_potential * 0.20
        + breakdown.renovation_roi * 0.15
        + breakdown.energy_upgrade_roi * 0.15
        + breakdown.neighborhood_growth * 0.15
        + breakdown.accessibility * 0.15
        + breakdown.amenities_score * 0.10
        + breakdown.future_development * 0.10
    )
    return clamp_score(score), breakdown


def risk_level(record: PropertyRecord) -> str:
    points = 0
    if record.flood_risk is not None:
        if record.flood_risk.risk_level in ("High", "Very High"):
            points += 3
        elif record.flood_risk.risk_level == "Medium":
            points += 1
    if record.subsidence is not None and record.subsidence.stability_rating == "High risk":
        points += 2
    if record.soil_quality is not None:
        if record.soil_quality.contamination_level == "Severe":
            points += 3
        elif record.soil_quality.contamination_level == "Moderate":
            points += 1
    if record.safety is not None and record.safety.safety_score < 40:
        points += 2
    if record.building_permits is not None and record.building_permits.growth_trend == "Decreasing":
        points += 1

    if points >= 6:
        return "Very High"
    if points >= 4:
        return "High"
    if points >= 2:
        return "Medium"
    return "Low"


def recommendations(record: PropertyRecord, scores: PropertyScores) -> list[str]:
    esg = scores.breakdown.esg
    opportunity = scores.breakdown.opportunity
    items: list[str] = []

    if esg.energy_efficiency < 60:
        items.append("Consider energy efficiency improvements (insulation, double glazing, solar panels)")
    if record.sustainability is not None and record.sustainability.total_cost_savings > 1000:
        items.append(f"Energy upgrades could save €{record.sustainability.total_cost_savings:.0f}/year")
    if record.flood_risk is not None and record.flood_risk.risk_level in ("High", "Very High"):
        items.append("High flood risk - ensure comprehensive insurance coverage")
    if opportunity.development_potential > 70:
        items.append("Property has significant development potential - check zoning regulations")
    if scores.profit_score > 75:
        items.append("Strong market conditions - good time for investment or sale")
    elif scores.profit_score < 40:
        items.append("Weak market indicators - consider holding or substantial improvements")
    if opportunity.accessibility < 50:
        items.append("Limited accessibility may affect resale value")
    if opportunity.renovation_roi > 70:
        items.append("High ROI potential for renovations - prioritize kitchen and bathroom upgrades")
    return items
