"""
Score Calculator

Pure functions turning audit metrics and detected technologies into 0-100
category scores and a weighted overall score.
"""
import math
from typing import Dict, List, Optional

from localinsights.features.audit.schemas.website_audit import DetailedMetrics, TechnologyCategory, WebsiteScores
from localinsights.features.audit.utils.audit_metrics import failure_count

SCORE_WEIGHTS: Dict[str, float] = {
    "performance": 0.30,
    "accessibility": 0.15,
    "best_practices": 0.15,
    "seo": 0.15,
    "mobile": 0.15,
    "technical": 0.10,
}

TECHNICAL_BASE_SCORE = 70
MODERN_FRAMEWORKS = {"React", "Vue.js", "Angular"}
HOSTED_PLATFORMS = {"Shopify", "Wix", "Squarespace"}

# Mobile performance is assumed to trail desktop by this ratio when no mobile run exists
MOBILE_FALLBACK_RATIO = 0.7


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


def scale_score(score: Optional[float]) -> int:
    """Scale a 0-1 score to 0-100, rounding halves up."""
    if score is None:
        return 0
    return clamp(math.floor(score * 100 + 0.5))


def calculate_mobile_score(desktop: DetailedMetrics, mobile: DetailedMetrics) -> int:
    mobile_score = scale_score(mobile.performance.score)

    performance_diff = (mobile.performance.score - desktop.performance.score) * 100
    if performance_diff < -20:
        mobile_score -= 10
    elif performance_diff < -10:
        mobile_score -= 5

    mobile_failures = failure_count(mobile)
    desktop_failures = failure_count(desktop)
    if mobile_failures > desktop_failures:
        mobile_score -= min(15, (mobile_failures - desktop_failures) * 2)

    return clamp(mobile_score)


def fallback_mobile_score(performance: int) -> int:
    return clamp(math.floor(performance * MOBILE_FALLBACK_RATIO + 0.5))


def _category(technologies: List[TechnologyCategory], name: str) -> Optional[TechnologyCategory]:
    return next((category for category in technologies if category.name == name), None)


def calculate_technical_score(technologies: List[TechnologyCategory]) -> int:
    score = TECHNICAL_BASE_SCORE

    frameworks = _category(technologies, "JavaScript Framework")
    if frameworks:
        score += 10
        if any(tech.name in MODERN_FRAMEWORKS for tech in frameworks.technologies):
            score += 5

    if _category(technologies, "Analytics"):
        score += 5

    cms = _category(technologies, "CMS")
    if cms and cms.technologies:
        # WordPress and self-hosted CMSs are neutral
        if cms.technologies[0].name in HOSTED_PLATFORMS:
            score += 5

    return clamp(score)


def calculate_overall_score(scores: Dict[str, Optional[int]]) -> int:
    """Weighted mean over the categories present; weights are renormalized when some are missing."""
    present = {name: value for name, value in scores.items() if name in SCORE_WEIGHTS and value is not None}
    total_weight = sum(SCORE_WEIGHTS[name] for name in present)
    if not total_weight:
        return 0

    weighted = sum(value * SCORE_WEIGHTS[name] for name, value in present.items())
    return clamp(math.floor(weighted / total_weight + 0.5))


def calculate_website_score(
    desktop: DetailedMetrics,
    mobile: Optional[DetailedMetrics] = None,
    technologies: Optional[List[TechnologyCategory]] = None,
) -> WebsiteScores:
    """
    Combine one or two audit runs and the detected technologies into WebsiteScores.

    Category scores come from the desktop run. Without a mobile run the mobile
    score is estimated from desktop performance. The technical score is left
    out only when technology detection did not run (``technologies`` is None).
    """
    performance = scale_score(desktop.performance.score)
    if mobile is not None:
        mobile_score = calculate_mobile_score(desktop, mobile)
    else:
        mobile_score = fallback_mobile_score(performance)

    scores = {
        "performance": performance,
        "accessibility": scale_score(desktop.accessibility.score),
        "best_practices": scale_score(desktop.best_practices.score),
        "seo": scale_score(desktop.seo.score),
        "mobile": mobile_score,
        "technical": calculate_technical_score(technologies) if technologies is not None else None,
    }

    return WebsiteScores(overall=calculate_overall_score(scores), **scores)
