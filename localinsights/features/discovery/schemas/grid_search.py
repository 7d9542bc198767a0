"""
Grid Search Schemas

Job payloads and results for region discovery.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Bounds(BaseModel):
    """Rectangle given by its northeast and southwest corners."""
    northeast: Coordinates
    southwest: Coordinates

    @model_validator(mode="after")
    def check_non_degenerate(self) -> "Bounds":
        if self.northeast.lat <= self.southwest.lat:
            raise ValueError("northeast.lat must be greater than southwest.lat")
        if self.northeast.lng <= self.southwest.lng:
            raise ValueError("northeast.lng must be greater than southwest.lng")
        return self

    def center(self) -> Coordinates:
        return Coordinates(
            lat=(self.northeast.lat + self.southwest.lat) / 2,
            lng=(self.northeast.lng + self.southwest.lng) / 2,
        )


class GridSearchJobPayload(BaseModel):
    """Payload of a grid-search job. Either bounds or grid_id must resolve a tile."""
    model_config = ConfigDict(populate_by_name=True)

    grid_id: Optional[str] = Field(default=None, alias="gridId")
    location: str = Field(..., min_length=1)
    bounds: Optional[Bounds] = None
    radius: int = Field(default=1000, gt=0, le=50000)
    category: Optional[str] = None
    scraper_run_id: Optional[str] = Field(default=None, alias="scraperRunId")

    @field_validator("category")
    @classmethod
    def blank_category_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class GridSearchResult(BaseModel):
    businesses_found: int
    raw_record_ids: List[str] = Field(default_factory=list)
    grid_id: Optional[str] = None


class RegionSearchPlan(BaseModel):
    """Result of tiling a region and enqueueing one job per tile."""
    scraper_run_id: str
    grid_ids: List[str]
    job_ids: List[str]
