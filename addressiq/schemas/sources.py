"""Typed records returned by the upstream adapters, one model per record slot."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SourceModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# Property and valuation


class KadasterObjectInfo(SourceModel):
    owner_name: str = ""
    cadastral_reference: str = ""
    woz_value: float = 0.0
    energy_label: str = ""
    municipal_taxes: float = 0.0
    surface_area: float = 0.0
    plot_size: float = 0.0
    building_type: str = ""
    build_year: int = 0


class WOZData(SourceModel):
    woz_value: float = 0.0
    reference_date: str = ""
    build_year: int = 0
    surface_area: float = 0.0
    building_type: str = ""


class MarketValuation(SourceModel):
    market_value: float = 0.0
    value_range_low: float = 0.0
    value_range_high: float = 0.0
    confidence: float = 0.0
    valuation_date: str = ""
    features: dict[str, str | float | int | bool | None] = Field(default_factory=dict)


class Transaction(SourceModel):
    date: str = ""
    purchase_price: float = 0.0
    transaction_type: str = ""


class TransactionHistory(SourceModel):
    transactions: list[Transaction] = Field(default_factory=list)
    total_count: int = 0


class MonumentStatus(SourceModel):
    is_monument: bool = False
    type: str = ""
    name: str = ""
    date: str = ""


# Weather


class HistoricalValue(SourceModel):
    date: str = ""
    value: float = 0.0


class WeatherData(SourceModel):
    temperature: float = 0.0
    precipitation: float = 0.0
    rainfall_forecast: list[float] = Field(default_factory=list)
    wind_speed: float = 0.0
    wind_direction: int = 0
    humidity: float = 0.0
    pressure: float = 0.0
    last_updated: str = ""
    historical_rainfall: list[HistoricalValue] = Field(default_factory=list)


class SolarData(SourceModel):
    solar_radiation: float = 0.0
    sunshine_hours: float = 0.0
    uv_index: float = 0.0
    date: str = ""
    historical: list[HistoricalValue] = Field(default_factory=list)


# Soil and environment


class SoilData(SourceModel):
    soil_type: str = "Unknown"
    composition: str = "Unknown"
    permeability: float = 0.0
    organic_matter: float = 0.0
    ph: float = Field(default=0.0, alias="pH")
    suitability: str = "Unknown"


class SubsidenceData(SourceModel):
    subsidence_rate: float = 0.0
    total_subsidence: float = 0.0
    stability_rating: str = "Unknown"
    measurement_date: str = ""
    ground_movement: float = 0.0


class SoilQualityData(SourceModel):
    contamination_level: str = "Unknown"
    contaminants: list[str] = Field(default_factory=list)
    restricted_use: bool = False


class BROSoilMapData(SourceModel):
    soil_type: str = "Unknown"
    peat_composition: float = 0.0
    profile: str = "Unknown"
    foundation_quality: str = "Unknown"
    groundwater_depth: float = 0.0


class AirMeasurement(SourceModel):
    parameter: str = ""
    value: float = 0.0
    unit: str = ""


class AirQualityData(SourceModel):
    station_id: str = ""
    station_name: str = ""
    measurements: list[AirMeasurement] = Field(default_factory=list)
    aqi: int = 0
    category: str = "Unknown"
    last_updated: str = ""


class NoiseSource(SourceModel):
    type: str = ""
    level: float = 0.0
    distance: float = 0.0


class NoisePollutionData(SourceModel):
    total_noise: float = 0.0
    road_noise: float = 0.0
    rail_noise: float = 0.0
    industry_noise: float = 0.0
    aircraft_noise: float = 0.0
    noise_category: str = "Unknown"
    exceeds_limit: bool = False
    sources: list[NoiseSource] = Field(default_factory=list)


# Energy


class EnergyClimateData(SourceModel):
    energy_label: str = "Unknown"
    climate_risk: str = "Unknown"
    efficiency_score: float = 0.0
    annual_energy_cost: float = 0.0
    co2_emissions: float = 0.0
    heat_loss: float = 0.0


class SustainabilityMeasure(SourceModel):
    type: str = ""
    description: str = ""
    cost: float = 0.0
    annual_savings: float = 0.0
    co2_reduction: float = 0.0


class SustainabilityData(SourceModel):
    current_rating: str = "Unknown"
    potential_rating: str = "Unknown"
    recommended_measures: list[SustainabilityMeasure] = Field(default_factory=list)
    total_co2_savings: float = 0.0
    total_cost_savings: float = 0.0
    investment_cost: float = 0.0
    payback_period: float = 0.0


# Water and safety


class FloodRiskData(SourceModel):
    risk_level: str = "Unknown"
    flood_probability: float = 0.0
    water_depth: float = 0.0
    nearest_dike: float = 0.0
    dike_quality: str = "Unknown"
    flood_zone: str = ""


class WaterQualityData(SourceModel):
    water_quality: str = "Unknown"
    nearest_water: str = ""
    distance: float = 0.0
    parameters: dict[str, float] = Field(default_factory=dict)


class SafetyData(SourceModel):
    safety_score: float = 0.0
    safety_perception: str = "Unknown"
    crime_rate: float = 0.0
    crime_types: dict[str, int] = Field(default_factory=dict)
    year: int = 0


class FlightPath(SourceModel):
    runway: str = ""
    distance: float = 0.0
    daily_flights: int = 0


class SchipholFlightData(SourceModel):
    daily_flights: int = 0
    noise_level: float = 0.0
    flight_paths: list[FlightPath] = Field(default_factory=list)
    night_flights: int = 0
    noise_contour: str = "None"


# Mobility


class TrafficData(SourceModel):
    location_id: str = ""
    location: str = ""
    traffic_intensity: int = 0
    average_speed: float = 0.0
    congestion_level: str = ""
    distance: float = 0.0
    measurement_time: str = ""


class Coordinates(SourceModel):
    lat: float = 0.0
    lon: float = 0.0


class TransportStop(SourceModel):
    stop_id: str = ""
    name: str = ""
    type: str = ""
    distance: float = 0.0
    lines: list[str] = Field(default_factory=list)
    coordinates: Coordinates = Field(default_factory=Coordinates)


class PublicTransportData(SourceModel):
    nearest_stops: list[TransportStop] = Field(default_factory=list)
    connections: list[dict[str, str | int | float]] = Field(default_factory=list)


class ParkingZone(SourceModel):
    zone_id: str = ""
    name: str = ""
    type: str = ""
    capacity: int = 0
    available: int = 0
    distance: float = 0.0
    hourly_rate: float = 0.0


class ParkingData(SourceModel):
    total_spaces: int = 0
    available_spaces: int = 0
    parking_zones: list[ParkingZone] = Field(default_factory=list)


# Demographics


class PopulationDemographics(SourceModel):
    age0to14: int = 0
    age15to24: int = 0
    age25to44: int = 0
    age45to64: int = 0
    age65plus: int = 0


class PopulationData(SourceModel):
    total_population: int = 0
    age_distribution: dict[str, int] = Field(default_factory=dict)
    households: int = 0
    average_household_size: float = 0.0
    demographics: PopulationDemographics = Field(default_factory=PopulationDemographics)


class StatLineData(SourceModel):
    region_code: str = ""
    region_name: str = ""
    population: int = 0
    average_income: float = 0.0
    employment_rate: float = 0.0
    education_level: str = "Unknown"
    housing_stock: int = 0
    average_woz: float = Field(default=0.0, alias="averageWOZ")
    year: int = 0


class SquareStatsData(SourceModel):
    grid_id: str = ""
    population: int = 0
    households: int = 0
    average_woz: float = Field(default=0.0, alias="averageWOZ")
    average_income: float = 0.0
    housing_density: int = 0


class CBSData(SourceModel):
    avg_income: float = 0.0
    population_density: float = 0.0
    avg_woz_value: float = Field(default=0.0, alias="avgWOZValue")


# Infrastructure


class GreenSpace(SourceModel):
    name: str = ""
    type: str = ""
    area: float = 0.0
    distance: float = 0.0
    lat: float = 0.0
    lon: float = 0.0


class GreenSpacesData(SourceModel):
    total_green_area: float = 0.0
    green_percentage: float = 0.0
    nearest_park: str = ""
    park_distance: float = 0.0
    tree_canopy_cover: float = 0.0
    green_spaces: list[GreenSpace] = Field(default_factory=list)


class School(SourceModel):
    name: str = ""
    type: str = ""
    distance: float = 0.0
    quality_score: float = 0.0
    address: str = ""
    denomination: str = ""
    lat: float = 0.0
    lon: float = 0.0


class EducationData(SourceModel):
    nearest_primary_school: School | None = None
    nearest_secondary_school: School | None = None
    all_schools: list[School] = Field(default_factory=list)
    average_quality: float = 0.0


class BuildingPermit(SourceModel):
    permit_id: str = ""
    type: str = ""
    description: str = ""
    address: str = ""
    issue_date: str = ""
    status: str = ""
    distance: float = 0.0


class BuildingPermitsData(SourceModel):
    total_permits: int = 0
    new_construction: int = 0
    renovations: int = 0
    permits: list[BuildingPermit] = Field(default_factory=list)
    growth_trend: str = "Unknown"


class Facility(SourceModel):
    name: str = ""
    category: str = ""
    type: str = ""
    distance: float = 0.0
    walk_time: int = 0
    drive_time: int = 0
    rating: float = 0.0
    address: str = ""
    lat: float = 0.0
    lon: float = 0.0


class FacilitiesData(SourceModel):
    top_facilities: list[Facility] = Field(default_factory=list)
    amenities_score: float = 0.0
    category_counts: dict[str, int] = Field(default_factory=dict)


class ElevationData(SourceModel):
    elevation: float = 0.0
    terrain_slope: float = 0.0
    flood_risk: str = "Unknown"
    view_potential: str = "Unknown"
    surrounding: list[float] = Field(default_factory=list)


# Platforms


class PDOKPlatformData(SourceModel):
    cadastral_parcel: str = ""
    zoning_plan: str = ""
    protected_area: bool = False
    infrastructure: list[str] = Field(default_factory=list)
    utilities: list[str] = Field(default_factory=list)


class StratopoEnvironmentData(SourceModel):
    total_variables: int = 0
    environment_score: float = 0.0
    urbanization: str = ""
    variables: dict[str, float | str | int | bool | None] = Field(default_factory=dict)


class BuildingRights(SourceModel):
    max_height: float = 0.0
    max_volume: float = 0.0
    can_expand: bool = False
    can_subdivide: bool = False


class FuturePlan(SourceModel):
    name: str = ""
    type: str = ""
    status: str = ""
    impact: str = ""
    expected_year: int = 0


class LandUseData(SourceModel):
    primary_use: str = ""
    zoning: str = ""
    restrictions: list[str] = Field(default_factory=list)
    building_rights: BuildingRights = Field(default_factory=BuildingRights)
    future_plans: list[FuturePlan] = Field(default_factory=list)


# Location summary


class AISummary(SourceModel):
    summary: str = ""
    generated: bool = False
    error: str | None = None
