from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from addressiq.schemas.sources import (
    AISummary,
    AirQualityData,
    BROSoilMapData,
    BuildingPermitsData,
    CBSData,
    EducationData,
    ElevationData,
    EnergyClimateData,
    FacilitiesData,
    FloodRiskData,
    GreenSpacesData,
    KadasterObjectInfo,
    LandUseData,
    MarketValuation,
    MonumentStatus,
    NoisePollutionData,
    ParkingData,
    PDOKPlatformData,
    PopulationData,
    PublicTransportData,
    SafetyData,
    SchipholFlightData,
    SoilData,
    SoilQualityData,
    SolarData,
    SquareStatsData,
    StatLineData,
    StratopoEnvironmentData,
    SubsidenceData,
    SustainabilityData,
    TrafficData,
    TransactionHistory,
    WaterQualityData,
    WeatherData,
    WOZData,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResolvedAddress(CamelModel):
    postcode: str
    house_number: str
    address: str
    lat: float
    lon: float
    bag_id: str = ""
    municipality_code: str = ""
    neighborhood_code: str = ""
    geojson: str = ""


class PropertyRecord(CamelModel):
    address: str
    coordinates: tuple[float, float]
    bag_id: str = ""
    postcode: str = ""
    house_number: str = ""
    municipality_code: str = ""
    neighborhood_code: str = ""
    geojson: str = ""

    kadaster_info: KadasterObjectInfo | None = None
    woz_data: WOZData | None = None
    market_valuation: MarketValuation | None = None
    transaction_history: TransactionHistory | None = None
    monument_status: MonumentStatus | None = None

    weather: WeatherData | None = None
    solar_potential: SolarData | None = None
    soil_data: SoilData | None = None
    subsidence: SubsidenceData | None = None
    soil_quality: SoilQualityData | None = None
    bro_soil_map: BROSoilMapData | None = None
    air_quality: AirQualityData | None = None
    noise_pollution: NoisePollutionData | None = None

    energy_climate: EnergyClimateData | None = None
    sustainability: SustainabilityData | None = None

    flood_risk: FloodRiskData | None = None
    water_quality: WaterQualityData | None = None
    safety: SafetyData | None = None
    schiphol_flights: SchipholFlightData | None = None

    traffic_data: list[TrafficData] | None = None
    public_transport: PublicTransportData | None = None
    parking_data: ParkingData | None = None

    population: PopulationData | None = None
    stat_line_data: StatLineData | None = None
    square_stats: SquareStatsData | None = None
    cbs_data: CBSData | None = None

    green_spaces: GreenSpacesData | None = None
    education: EducationData | None = None
    building_permits: BuildingPermitsData | None = None
    facilities: FacilitiesData | None = None
    elevation: ElevationData | None = None

    pdok_data: PDOKPlatformData | None = None
    stratopo_environment: StratopoEnvironmentData | None = None
    land_use: LandUseData | None = None

    ai_summary: AISummary | None = None

    aggregated_at: datetime
    data_sources: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def lon(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]

    def encode(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def decode(cls, payload: bytes) -> "PropertyRecord":
        return cls.model_validate_json(payload)


class ProgressEvent(CamelModel):
    source: str
    status: str
    data: Any = None
    error: str | None = None
    timestamp: datetime
    completed: int = 0
    total: int = 0

    @property
    def terminal(self) -> bool:
        return self.status not in ("pending", "running")


class PropertyResponse(BaseModel):
    property: PropertyRecord
