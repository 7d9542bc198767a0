"""
Helpers that read a Lighthouse report (the ``lhr`` JSON) into metric
snapshots, device comparisons and prioritized recommendations.
"""
from typing import Any, Dict, List, Optional

from localinsights.features.audit.schemas.website_audit import (
    CategoryMetrics,
    DetailedMetrics,
    DeviceComparison,
    FailingItem,
    PerformanceMetrics,
    Recommendation,
    SpeedMetrics,
)

FAILING_THRESHOLD = 0.9
MAX_RECOMMENDATIONS = 15

# Order in which categories are reported
RECOMMENDATION_ORDER = ("performance", "seo", "accessibility", "best-practices")

IMPACT_ORDER = {"high": 0, "medium": 1, "low": 2}

SPEED_AUDITS = {
    "first_contentful_paint": "first-contentful-paint",
    "largest_contentful_paint": "largest-contentful-paint",
    "total_blocking_time": "total-blocking-time",
    "cumulative_layout_shift": "cumulative-layout-shift",
    "speed_index": "speed-index",
    "interactive": "interactive",
}

COMPARED_SPEED_METRICS = {
    "firstContentfulPaint": "first_contentful_paint",
    "largestContentfulPaint": "largest_contentful_paint",
    "totalBlockingTime": "total_blocking_time",
    "speedIndex": "speed_index",
}


def determine_impact(score: float, weight: float) -> str:
    if score < 0.5 and weight > 0.5:
        return "high"
    if score < 0.7 or weight > 0.3:
        return "medium"
    return "low"


def _category_score(lhr: Dict[str, Any], category: str) -> float:
    return ((lhr.get("categories") or {}).get(category) or {}).get("score") or 0


def _failing_audits(lhr: Dict[str, Any], category: str):
    """Yield (audit_id, audit, weight) for every audit of a category scoring below the threshold."""
    audits = lhr.get("audits") or {}
    category_data = (lhr.get("categories") or {}).get(category) or {}

    for ref in category_data.get("auditRefs") or []:
        audit = audits.get(ref.get("id"))
        if not audit:
            continue
        score = audit.get("score")
        if score is None or score >= FAILING_THRESHOLD:
            continue
        yield ref.get("id"), audit, ref.get("weight") or 0


def _failing_items(lhr: Dict[str, Any], category: str) -> List[FailingItem]:
    return [
        FailingItem(title=audit.get("title") or audit_id, impact=determine_impact(audit["score"], weight))
        for audit_id, audit, weight in _failing_audits(lhr, category)
    ]


def extract_detailed_metrics(lhr: Optional[Dict[str, Any]]) -> DetailedMetrics:
    if not lhr:
        return DetailedMetrics()

    audits = lhr.get("audits") or {}
    speed = {
        field: (audits.get(audit_id) or {}).get("numericValue") or None
        for field, audit_id in SPEED_AUDITS.items()
    }

    return DetailedMetrics(
        performance=PerformanceMetrics(score=_category_score(lhr, "performance"), metrics=SpeedMetrics(**speed)),
        accessibility=CategoryMetrics(
            score=_category_score(lhr, "accessibility"),
            failing_items=_failing_items(lhr, "accessibility"),
        ),
        best_practices=CategoryMetrics(
            score=_category_score(lhr, "best-practices"),
            failing_items=_failing_items(lhr, "best-practices"),
        ),
        seo=CategoryMetrics(score=_category_score(lhr, "seo"), failing_items=_failing_items(lhr, "seo")),
    )


def _percentage_diff(mobile_value: Optional[float], desktop_value: Optional[float]) -> Optional[int]:
    if mobile_value is None or desktop_value is None or desktop_value == 0:
        return None
    return round((mobile_value - desktop_value) / desktop_value * 100)


def failure_count(metrics: DetailedMetrics) -> int:
    return (
        len(metrics.accessibility.failing_items)
        + len(metrics.best_practices.failing_items)
        + len(metrics.seo.failing_items)
    )


def compare_metrics(desktop: DetailedMetrics, mobile: DetailedMetrics) -> DeviceComparison:
    performance_diff = (mobile.performance.score - desktop.performance.score) * 100

    speed_diff = {
        name: _percentage_diff(getattr(mobile.performance.metrics, field), getattr(desktop.performance.metrics, field))
        for name, field in COMPARED_SPEED_METRICS.items()
    }

    mobile_items = list(mobile.accessibility.failing_items)
    if mobile.performance.score < FAILING_THRESHOLD:
        mobile_items.append(FailingItem(title="Mobile Performance", impact="high"))
    mobile_items += mobile.best_practices.failing_items + mobile.seo.failing_items

    desktop_titles = {
        item.title
        for item in desktop.accessibility.failing_items + desktop.best_practices.failing_items + desktop.seo.failing_items
    }

    return DeviceComparison(
        performance_diff=performance_diff,
        is_mobile_worse=performance_diff < -10,
        speed_metrics_diff=speed_diff,
        mobile_only_issues=[item for item in mobile_items if item.title not in desktop_titles],
    )


def _priority(recommendation: Recommendation):
    return IMPACT_ORDER[recommendation.impact], recommendation.score or 0


def generate_recommendations(
    desktop_lhr: Optional[Dict[str, Any]],
    mobile_lhr: Optional[Dict[str, Any]] = None,
) -> List[Recommendation]:
    """Failing audits grouped by category, each group sorted by impact then score. Mobile report wins."""
    lhr = mobile_lhr or desktop_lhr
    if not lhr:
        return []

    recommendations: List[Recommendation] = []
    for category in RECOMMENDATION_ORDER:
        group = [
            Recommendation(
                title=audit.get("title") or audit_id,
                description=audit.get("description") or "",
                impact=determine_impact(audit["score"], weight),
                category=category,
                score=audit["score"],
            )
            for audit_id, audit, weight in _failing_audits(lhr, category)
        ]
        recommendations.extend(sorted(group, key=_priority))

    return recommendations[:MAX_RECOMMENDATIONS]
