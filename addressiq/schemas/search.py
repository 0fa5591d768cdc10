from typing import Any

from pydantic import BaseModel, Field

from addressiq.schemas.sources import AISummary


class APIResult(BaseModel):
    name: str
    status: str
    data: Any = None
    error: str | None = None
    category: str


class APIResultsGrouped(BaseModel):
    free: list[APIResult] = Field(default_factory=list)
    freemium: list[APIResult] = Field(default_factory=list)
    premium: list[APIResult] = Field(default_factory=list)


class ComprehensiveSearchResponse(BaseModel):
    address: str
    coordinates: tuple[float, float]
    geojson: str = ""
    apiResults: APIResultsGrouped
    aiSummary: AISummary | None = None
