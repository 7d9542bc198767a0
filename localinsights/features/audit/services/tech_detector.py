"""
Tech Detector

Fingerprints the platform, frameworks and analytics tools of a site by matching
its markup against a fixed table of signatures.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from localinsights.features.audit.schemas.website_audit import Technology, TechnologyCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signature:
    name: str
    markers: Tuple[str, ...]
    categories: Tuple[str, ...]
    confidence: int = 80
    website: Optional[str] = None
    version_pattern: Optional[str] = None
    # Markers are matched case sensitively unless this is set
    ignore_case: bool = False


def _generator(product: str) -> str:
    return r'meta\s+name="generator"\s+content="' + product + r'\s+([0-9.]+)'


SIGNATURES: Tuple[Signature, ...] = (
    # CMS / e-commerce / site builders
    Signature(
        "WordPress", ("/wp-content/", "/wp-includes/", "wp-json", "WordPress"), ("CMS",),
        website="https://wordpress.org", version_pattern=_generator("WordPress"),
    ),
    Signature(
        "Shopify", ("cdn.shopify.com", "shopify-section", "shopify.com"), ("eCommerce", "CMS"),
        website="https://shopify.com",
    ),
    Signature(
        "Wix", ("wix.com", "wixsite.com", "_wixCssModules"), ("Website Builder", "CMS"),
        website="https://wix.com",
    ),
    Signature(
        "Squarespace", ("squarespace.com", "static.squarespace.com", "static1.squarespace.com"),
        ("Website Builder", "CMS"), website="https://squarespace.com",
    ),
    Signature(
        "Drupal", ("drupal.js", "drupal.min.js", "Drupal.settings"), ("CMS",),
        website="https://drupal.org", version_pattern=_generator("Drupal"),
    ),
    Signature(
        "Joomla", ("/media/jui/", "/media/system/js/", "joomla"), ("CMS",),
        website="https://joomla.org", version_pattern=_generator("Joomla!"),
    ),
    # JavaScript frameworks and libraries
    Signature(
        "React", ("react.", "react-dom.", "data-reactroot", "__REACT_ROOT_ID__"), ("JavaScript Framework",),
        website="https://reactjs.org",
    ),
    Signature(
        "Vue.js", ("vue.js", "vue.min.js", "__vue__", "v-app"), ("JavaScript Framework",),
        website="https://vuejs.org",
    ),
    Signature(
        "jQuery", ("jquery",), ("JavaScript Library",),
        website="https://jquery.com", version_pattern=r"jquery[.-]([0-9.]+?)(?:\.min)?\.js", ignore_case=True,
    ),
    # Analytics and marketing
    Signature(
        "Google Analytics", ("google-analytics.com/analytics.js", "ga.js", "gtag"), ("Analytics",),
        confidence=90, website="https://analytics.google.com",
    ),
    Signature(
        "Google Tag Manager", ("googletagmanager.com", "gtm.js"), ("Tag Manager",),
        confidence=90, website="https://tagmanager.google.com",
    ),
    Signature(
        "Facebook Pixel", ("connect.facebook.net", "fbevents.js", "facebook-jssdk"), ("Analytics", "Marketing"),
        website="https://www.facebook.com/business/help/952192354843755",
    ),
    Signature(
        "HubSpot", ("js.hs-scripts.com", "js.hubspot.com", "hs-analytics"), ("Marketing Automation", "Analytics"),
        website="https://hubspot.com",
    ),
)

ANGULAR_MARKERS = ("angular.js", "angular.min.js", "ng-app", "ng-controller")
ANGULAR_2_MARKERS = ("angular2", "@angular/core")


def _matches(signature: Signature, html: str, html_lower: str) -> bool:
    if signature.ignore_case:
        return any(marker.lower() in html_lower for marker in signature.markers)
    return any(marker in html for marker in signature.markers)


def _detect_angular(html: str) -> Optional[Technology]:
    if not any(marker in html for marker in ANGULAR_MARKERS):
        return None
    if any(marker in html for marker in ANGULAR_2_MARKERS):
        return Technology(
            name="Angular", confidence=80, version="2+", website="https://angular.io",
            categories=["JavaScript Framework"],
        )
    return Technology(
        name="AngularJS", confidence=80, version="1.x", website="https://angularjs.org",
        categories=["JavaScript Framework"],
    )


def detect_from_html(html: str) -> List[Technology]:
    if not html:
        return []

    html_lower = html.lower()
    technologies = []

    for signature in SIGNATURES:
        if not _matches(signature, html, html_lower):
            continue

        version = None
        if signature.version_pattern:
            match = re.search(signature.version_pattern, html, re.IGNORECASE)
            if match:
                version = match.group(1)

        technologies.append(
            Technology(
                name=signature.name,
                confidence=signature.confidence,
                version=version,
                website=signature.website,
                categories=list(signature.categories),
            )
        )

    angular = _detect_angular(html)
    if angular:
        technologies.append(angular)

    return technologies


def categorize_technologies(technologies: List[Technology]) -> List[TechnologyCategory]:
    """Group technologies by category, keeping first-seen order."""
    grouped: Dict[str, List[Technology]] = {}
    for tech in technologies:
        for category in tech.categories or ["Unknown"]:
            grouped.setdefault(category, []).append(tech)
    return [TechnologyCategory(name=name, technologies=techs) for name, techs in grouped.items()]


class TechDetector:
    """
    Fetches a page with its own HTTP client and fingerprints the markup.

    When the fetch fails the caller-supplied fallback markup (usually the audit
    browser's page source) is used instead. Detection never raises.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = "Mozilla/5.0 (compatible; LocalWebInsightsBot/1.0; +https://localwebsiteaudit.ca)",
        http_client: Optional[httpx.Client] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.http = http_client or httpx.Client(follow_redirects=True)

    def fetch_html(self, url: str) -> Optional[str]:
        try:
            response = self.http.get(url, timeout=self.timeout, headers={"User-Agent": self.user_agent})
            response.raise_for_status()
            return response.text
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch {url} for technology detection: {e}")
            return None

    def detect(
        self,
        url: str,
        fallback_html: Optional[Callable[[], Optional[str]]] = None,
    ) -> List[TechnologyCategory]:
        html = self.fetch_html(url)
        if html is None and fallback_html is not None:
            try:
                html = fallback_html()
            except Exception as e:
                logger.warning(f"Fallback markup unavailable for {url}: {e}")
                html = None

        technologies = detect_from_html(html or "")
        logger.info(f"Detected {len(technologies)} technologies on {url}")
        return categorize_technologies(technologies)
