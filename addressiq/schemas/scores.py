from pydantic import Field

from addressiq.schemas.property import CamelModel, PropertyRecord


class ESGBreakdown(CamelModel):
    energy_efficiency: float = 0.0
    environmental_risk: float = 0.0
    social_livability: float = 0.0
    sustainability: float = 0.0
    flood_risk: float = 0.0
    air_quality: float = 0.0
    noise_level: float = 0.0
    green_space_access: float = 0.0


class ProfitBreakdown(CamelModel):
    current_value: float = 0.0
    market_value: float = 0.0
    price_appreciation: float = 0.0
    rental_yield: float = 0.0
    market_demand: float = 0.0
    liquidity_score: float = 0.0
    capital_growth: float = 0.0


class OpportunityBreakdown(CamelModel):
    development_potential: float = 0.0
    renovation_roi: float = Field(default=0.0, alias="renovationROI")
    energy_upgrade_roi: float = Field(default=0.0, alias="energyUpgradeROI")
    neighborhood_growth: float = 0.0
    accessibility: float = 0.0
    amenities_score: float = 0.0
    future_development: float = 0.0


class ScoreBreakdown(CamelModel):
    esg: ESGBreakdown
    profit: ProfitBreakdown
    opportunity: OpportunityBreakdown


class PropertyScores(CamelModel):
    esg_score: float
    profit_score: float
    opportunity_score: float
    overall_score: float
    risk_level: str
    breakdown: ScoreBreakdown
    recommendations: list[str] = Field(default_factory=list)


class ScoresResponse(CamelModel):
    postcode: str
    house_number: str
    scores: PropertyScores


class RecommendationsResponse(CamelModel):
    postcode: str
    house_number: str
    recommendations: list[str]


class AnalysisResponse(CamelModel):
    postcode: str
    house_number: str
    property: PropertyRecord
    scores: PropertyScores
