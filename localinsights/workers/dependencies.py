"""
Per-process wiring of processor dependencies from settings.

Built lazily on first use inside a worker so importing task modules never
opens connections.
"""
from functools import lru_cache, partial

from localinsights.features.audit.services.browser_session import BrowserFactory, build_driver
from localinsights.features.audit.services.lighthouse_runner import LighthouseRunner
from localinsights.features.audit.services.tech_detector import TechDetector
from localinsights.features.audit.services.website_audit import WebsiteAuditProcessor
from localinsights.features.businesses.services.data_processing import DataProcessingProcessor
from localinsights.features.discovery.services.grid_search import GridSearchProcessor
from localinsights.features.discovery.services.places_client import PlacesClient
from localinsights.platform.config import settings
from localinsights.platform.db.session import get_session_factory
from localinsights.platform.storage import ScreenshotStorage, create_screenshot_storage


@lru_cache
def get_places_client() -> PlacesClient:
    return PlacesClient(
        api_keys=settings.places_api_keys,
        base_url=settings.PLACES_API_URL,
        timeout=settings.PLACES_API_TIMEOUT,
        max_pages=settings.PLACES_MAX_PAGES,
        page_token_delay=settings.PLACES_PAGE_TOKEN_DELAY,
    )


@lru_cache
def get_screenshot_storage() -> ScreenshotStorage:
    return create_screenshot_storage(settings)


def get_browser_factory() -> BrowserFactory:
    return partial(
        build_driver,
        chromedriver_path=settings.CHROMEDRIVER_PATH,
        use_webdriver_manager=settings.USE_WEBDRIVER_MANAGER,
    )


@lru_cache
def get_lighthouse_runner() -> LighthouseRunner:
    return LighthouseRunner(binary=settings.LIGHTHOUSE_PATH, timeout=settings.LIGHTHOUSE_TIMEOUT)


@lru_cache
def get_tech_detector() -> TechDetector:
    return TechDetector(timeout=settings.TECH_DETECTOR_TIMEOUT, user_agent=settings.BOT_USER_AGENT)


def get_grid_search_processor() -> GridSearchProcessor:
    return GridSearchProcessor(get_session_factory(), get_places_client(), fetch_details=settings.PLACES_FETCH_DETAILS)


def get_data_processing_processor() -> DataProcessingProcessor:
    return DataProcessingProcessor(get_session_factory())


def get_website_audit_processor() -> WebsiteAuditProcessor:
    return WebsiteAuditProcessor(
        session_factory=get_session_factory(),
        storage=get_screenshot_storage(),
        browser_factory=get_browser_factory(),
        lighthouse=get_lighthouse_runner(),
        tech_detector=get_tech_detector(),
        navigation_timeout=settings.NAVIGATION_TIMEOUT,
        url_check_timeout=settings.URL_CHECK_TIMEOUT,
    )
