"""
Business Schemas

Canonical business fields produced by the data transformer and the
process-raw-data job contract.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from localinsights.features.discovery.schemas.grid_search import Coordinates

UNKNOWN_BUSINESS_NAME = "Unknown Business"


class BusinessFields(BaseModel):
    """Identity fields of a Business as extracted from one provider payload."""
    name: str = UNKNOWN_BUSINESS_NAME
    address: Optional[str] = None
    city: Optional[str] = None
    category: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    phone: Optional[str] = None
    website: Optional[str] = None
    location: Optional[Coordinates] = None
    status: Optional[str] = None
    hours: Optional[List[str]] = None
    photo_urls: List[str] = Field(default_factory=list)
    rating: Optional[float] = None
    rating_count: int = 0
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class DataProcessingJobPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    raw_record_id: str = Field(..., alias="rawRecordId", min_length=1)


class DataProcessingResult(BaseModel):
    raw_record_id: str
    business_id: Optional[str] = None
    website: Optional[str] = None
    skipped: bool = False
