import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from localinsights.features.audit.models.website_audit import WebsiteAudit
from localinsights.features.audit.schemas.website_audit import (
    DetailedMetrics,
    DeviceComparison,
    Recommendation,
    Screenshots,
    TechnologyCategory,
    WebsiteScores,
)
from localinsights.features.businesses.models.business import Business

logger = logging.getLogger(__name__)


def save_audit_results(
    db: Session,
    business: Business,
    url: str,
    scores: WebsiteScores,
    screenshots: Screenshots,
    technologies: List[TechnologyCategory],
    recommendations: List[Recommendation],
    desktop_metrics: Optional[DetailedMetrics] = None,
    mobile_metrics: Optional[DetailedMetrics] = None,
    comparison: Optional[DeviceComparison] = None,
) -> WebsiteAudit:
    """
    Append a WebsiteAudit row and point the business at it.

    Both writes share the caller's transaction; the caller commits.
    """
    now = datetime.now(timezone.utc)

    audit = WebsiteAudit(
        business_id=business.id,
        url=url,
        scores=scores.model_dump(by_alias=True),
        screenshots=screenshots.model_dump(),
        technology_stack=[category.model_dump() for category in technologies],
        recommendations=[recommendation.model_dump() for recommendation in recommendations],
        desktop_metrics=desktop_metrics.model_dump(by_alias=True) if desktop_metrics else None,
        mobile_metrics=mobile_metrics.model_dump(by_alias=True) if mobile_metrics else None,
        device_comparison=comparison.model_dump(by_alias=True) if comparison else None,
        audit_date=now,
    )
    db.add(audit)
    db.flush()

    business.website = url
    business.overall_score = scores.overall
    business.latest_audit_id = audit.id
    business.last_scanned = now
    business.audit_error = None
    db.flush()

    logger.info(f"Saved audit {audit.id} for business {business.id} (overall={scores.overall})")
    return audit
