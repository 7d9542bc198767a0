"""
Website Audit

Runs the full audit of one business website inside a scoped browser session:

1. navigate on a desktop viewport (failure aborts, nothing is saved)
2. desktop and mobile full-page screenshots, uploaded to object storage
3. Lighthouse desktop run for the category scores
4. Lighthouse mobile run (throttled) for the mobile score
5. technology fingerprinting for the technical score
6. weighted overall score and prioritized recommendations
7. persist a WebsiteAudit row and update the Business

Audit tool failures are downgraded to zero scores. Navigation, storage and
database failures fail the job.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from localinsights.features.audit.schemas.website_audit import (
    Screenshots,
    TechnologyCategory,
    WebsiteAuditJobPayload,
    WebsiteAuditResult,
)
from localinsights.features.audit.services.audit_store import save_audit_results
from localinsights.features.audit.services.browser_session import (
    DESKTOP_VIEWPORT,
    MOBILE_VIEWPORT,
    BrowserFactory,
    BrowserSession,
    browser_session,
)
from localinsights.features.audit.services.lighthouse_runner import LighthouseRunner
from localinsights.features.audit.services.score_calculator import calculate_website_score
from localinsights.features.audit.services.tech_detector import TechDetector
from localinsights.features.audit.utils.audit_metrics import (
    compare_metrics,
    extract_detailed_metrics,
    generate_recommendations,
)
from localinsights.features.businesses.models.business import Business
from localinsights.platform.db.session import SessionFactory
from localinsights.platform.exceptions import AuditToolError, DatabaseError, ValidationError
from localinsights.platform.storage import ScreenshotStorage, screenshot_path
from localinsights.platform.utils.url_validator import check_url_reachability, validate_url
from localinsights.workers.job import Job, parse_payload

logger = logging.getLogger(__name__)


class WebsiteAuditProcessor:
    def __init__(
        self,
        session_factory: SessionFactory,
        storage: ScreenshotStorage,
        browser_factory: BrowserFactory,
        lighthouse: LighthouseRunner,
        tech_detector: TechDetector,
        navigation_timeout: int = 30,
        url_check_timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.browser_factory = browser_factory
        self.lighthouse = lighthouse
        self.tech_detector = tech_detector
        self.navigation_timeout = navigation_timeout
        self.url_check_timeout = url_check_timeout
        self.clock = clock

    def process(self, job: Job) -> WebsiteAuditResult:
        payload = parse_payload(WebsiteAuditJobPayload, job.payload)
        options = payload.options
        log_prefix = f"[{job.id}] [{payload.business_id}]"

        is_valid, url, error = validate_url(payload.url)
        if not is_valid:
            raise ValidationError(f"Invalid website URL '{payload.url}': {error}")

        business_id = self._load_business_id(payload.business_id)

        if options.validate_only:
            reachability = check_url_reachability(url, timeout=self.url_check_timeout)
            logger.info(f"{log_prefix} Validated {url}: reachable={reachability['is_reachable']}")
            return WebsiteAuditResult(
                business_id=business_id,
                url=url,
                reachability=reachability,
                validated_only=True,
            )

        logger.info(f"{log_prefix} Starting website audit of {url}")

        with browser_session(self.browser_factory) as browser:
            browser.set_viewport(*DESKTOP_VIEWPORT)
            browser.navigate(url, self.navigation_timeout)
            logger.info(f"{log_prefix} Page loaded")

            screenshots = Screenshots()
            if options.take_screenshots:
                screenshots = self._capture_screenshots(browser, business_id, log_prefix)

            desktop_lhr = mobile_lhr = None
            if options.run_audit_tool:
                desktop_lhr = self._run_audit_tool(url, "desktop", browser.debugger_port, log_prefix)
                if desktop_lhr is not None:
                    mobile_lhr = self._run_audit_tool(url, "mobile", browser.debugger_port, log_prefix)

            technologies: Optional[List[TechnologyCategory]] = None
            if options.detect_technologies:
                technologies = self.tech_detector.detect(url, fallback_html=lambda: browser.page_source)

        desktop_metrics = extract_detailed_metrics(desktop_lhr)
        mobile_metrics = extract_detailed_metrics(mobile_lhr) if mobile_lhr else None
        comparison = compare_metrics(desktop_metrics, mobile_metrics) if mobile_metrics else None

        scores = calculate_website_score(desktop_metrics, mobile_metrics, technologies)
        recommendations = generate_recommendations(desktop_lhr, mobile_lhr)
        logger.info(
            f"{log_prefix} Scores: performance={scores.performance} accessibility={scores.accessibility} "
            f"bestPractices={scores.best_practices} seo={scores.seo} mobile={scores.mobile} "
            f"technical={scores.technical} overall={scores.overall}"
        )

        with self.session_factory() as db:
            try:
                business = db.get(Business, business_id)
                if business is None:
                    raise ValidationError(f"Business {business_id} was deleted during the audit")

                audit = save_audit_results(
                    db,
                    business,
                    url,
                    scores=scores,
                    screenshots=screenshots,
                    technologies=technologies or [],
                    recommendations=recommendations,
                    desktop_metrics=desktop_metrics if desktop_lhr else None,
                    mobile_metrics=mobile_metrics,
                    comparison=comparison,
                )
                db.commit()
                audit_id = audit.id
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"{log_prefix} Failed to save audit results: {e}")
                raise DatabaseError(f"Database Error: {e}") from e

        logger.info(f"{log_prefix} Audit {audit_id} completed")
        return WebsiteAuditResult(
            business_id=business_id,
            url=url,
            audit_id=audit_id,
            scores=scores,
            screenshots=screenshots,
            recommendations=recommendations,
            technologies=technologies or [],
        )

    def _load_business_id(self, business_id: str) -> str:
        with self.session_factory() as db:
            try:
                business = db.get(Business, business_id)
            except SQLAlchemyError as e:
                raise DatabaseError(f"Database Error: failed to load business {business_id}: {e}") from e

            if business is None:
                raise ValidationError(f"Business {business_id} not found")
            return business.id

    def _capture_screenshots(self, browser: BrowserSession, business_id: str, log_prefix: str) -> Screenshots:
        desktop = self._upload(business_id, "desktop", browser.screenshot())

        browser.set_viewport(*MOBILE_VIEWPORT, mobile=True)
        browser.reload()
        mobile = self._upload(business_id, "mobile", browser.screenshot())

        # Back to desktop markup for the audit tool and the technology fallback
        browser.set_viewport(*DESKTOP_VIEWPORT)
        browser.reload()
        logger.info(f"{log_prefix} Screenshots uploaded")
        return Screenshots(desktop=desktop, mobile=mobile)

    def _upload(self, business_id: str, device: str, data: bytes) -> str:
        path = screenshot_path(business_id, device, int(self.clock() * 1000))
        self.storage.upload(path, data)
        return self.storage.public_url(path) or path

    def _run_audit_tool(
        self, url: str, device: str, port: Optional[int], log_prefix: str
    ) -> Optional[Dict[str, Any]]:
        try:
            return self.lighthouse.run(url, device=device, port=port)
        except AuditToolError as e:
            logger.error(f"{log_prefix} Lighthouse {device} run failed, continuing without it: {e}")
            return None
