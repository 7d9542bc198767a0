"""
Website Audit Schemas

Job payload, metric snapshots, scores and recommendations of a website audit.
Field aliases match the camelCase keys used on the queue and in stored JSON.
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Impact = Literal["high", "medium", "low"]
AuditCategory = Literal["performance", "accessibility", "best-practices", "seo"]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Job contract ──────────────────────────────

class AuditOptions(CamelModel):
    run_audit_tool: bool = Field(default=True, alias="runAuditTool")
    detect_technologies: bool = Field(default=True, alias="detectTechnologies")
    take_screenshots: bool = Field(default=True, alias="takeScreenshots")
    validate_only: bool = Field(default=False, alias="validateOnly")


class WebsiteAuditJobPayload(CamelModel):
    business_id: str = Field(..., alias="businessId", min_length=1)
    url: str = Field(..., min_length=1)
    options: AuditOptions = Field(default_factory=AuditOptions)

    @field_validator("options", mode="before")
    @classmethod
    def none_is_default(cls, v):
        return AuditOptions() if v is None else v


# ── Technology detection ──────────────────────

class Technology(BaseModel):
    name: str
    confidence: int
    version: Optional[str] = None
    website: Optional[str] = None
    categories: List[str] = Field(default_factory=list)


class TechnologyCategory(BaseModel):
    name: str
    technologies: List[Technology]


# ── Audit tool metrics ────────────────────────

class FailingItem(BaseModel):
    title: str
    impact: Impact


class SpeedMetrics(CamelModel):
    first_contentful_paint: Optional[float] = Field(default=None, alias="firstContentfulPaint")
    largest_contentful_paint: Optional[float] = Field(default=None, alias="largestContentfulPaint")
    total_blocking_time: Optional[float] = Field(default=None, alias="totalBlockingTime")
    cumulative_layout_shift: Optional[float] = Field(default=None, alias="cumulativeLayoutShift")
    speed_index: Optional[float] = Field(default=None, alias="speedIndex")
    interactive: Optional[float] = None


class PerformanceMetrics(BaseModel):
    score: float = 0
    metrics: SpeedMetrics = Field(default_factory=SpeedMetrics)


class CategoryMetrics(CamelModel):
    score: float = 0
    failing_items: List[FailingItem] = Field(default_factory=list, alias="failingItems")


class DetailedMetrics(CamelModel):
    """Per-category 0-1 scores and failing items of one audit tool run."""
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    accessibility: CategoryMetrics = Field(default_factory=CategoryMetrics)
    best_practices: CategoryMetrics = Field(default_factory=CategoryMetrics, alias="bestPractices")
    seo: CategoryMetrics = Field(default_factory=CategoryMetrics)


class DeviceComparison(CamelModel):
    performance_diff: float = Field(alias="performanceDiff")
    is_mobile_worse: bool = Field(alias="isMobileWorse")
    speed_metrics_diff: Dict[str, Optional[int]] = Field(default_factory=dict, alias="speedMetricsDiff")
    mobile_only_issues: List[FailingItem] = Field(default_factory=list, alias="mobileOnlyIssues")


class Recommendation(BaseModel):
    title: str
    description: str = ""
    impact: Impact
    category: AuditCategory
    score: Optional[float] = None


# ── Results ───────────────────────────────────

class WebsiteScores(CamelModel):
    performance: int = 0
    accessibility: int = 0
    best_practices: int = Field(default=0, alias="bestPractices")
    seo: int = 0
    mobile: int = 0
    technical: Optional[int] = None
    overall: int = 0


class Screenshots(BaseModel):
    desktop: Optional[str] = None
    mobile: Optional[str] = None


class WebsiteAuditResult(CamelModel):
    business_id: str = Field(alias="businessId")
    url: str
    audit_id: Optional[str] = Field(default=None, alias="auditId")
    scores: Optional[WebsiteScores] = None
    screenshots: Screenshots = Field(default_factory=Screenshots)
    recommendations: List[Recommendation] = Field(default_factory=list)
    technologies: List[TechnologyCategory] = Field(default_factory=list)
    reachability: Optional[Dict] = None
    validated_only: bool = Field(default=False, alias="validatedOnly")
