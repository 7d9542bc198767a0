"""
Browser Session

Headless Chrome driven through Selenium. One session belongs to exactly one
audit and is always quit when the ``browser_session`` block exits.
"""
import base64
import logging
import math
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from webdriver_manager.chrome import ChromeDriverManager

from localinsights.platform.exceptions import NavigationError, NetworkError, PipelineError

logger = logging.getLogger(__name__)

DESKTOP_VIEWPORT = (1920, 1080)
MOBILE_VIEWPORT = (375, 667)
MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)

BrowserFactory = Callable[[], webdriver.Chrome]


def build_driver(
    chromedriver_path: Optional[str] = None,
    use_webdriver_manager: bool = False,
    user_agent: Optional[str] = None,
) -> webdriver.Chrome:
    chrome_options = Options()
    chrome_options.add_argument("--headless=new")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument(f"--window-size={DESKTOP_VIEWPORT[0]},{DESKTOP_VIEWPORT[1]}")
    if user_agent:
        chrome_options.add_argument(f"--user-agent={user_agent}")

    if chromedriver_path:
        driver_service = Service(executable_path=chromedriver_path)
    elif use_webdriver_manager:
        driver_service = Service(ChromeDriverManager().install())
    else:
        driver_service = None

    if driver_service is not None:
        return webdriver.Chrome(service=driver_service, options=chrome_options)
    return webdriver.Chrome(options=chrome_options)


def _message(error: WebDriverException) -> str:
    return (error.msg or str(error)).strip()


class BrowserSession:
    def __init__(self, driver: webdriver.Chrome):
        self.driver = driver
        self._default_user_agent: Optional[str] = None
        self._mobile_emulation = False

    @property
    def debugger_port(self) -> Optional[int]:
        """Remote debugging port of the Chrome instance, for tools that attach over CDP."""
        address = (self.driver.capabilities.get("goog:chromeOptions") or {}).get("debuggerAddress")
        if not address or ":" not in address:
            return None
        return int(address.rsplit(":", 1)[1])

    @property
    def page_source(self) -> str:
        return self.driver.page_source

    def set_viewport(self, width: int, height: int, mobile: bool = False) -> None:
        self.driver.execute_cdp_cmd(
            "Emulation.setDeviceMetricsOverride",
            {
                "width": width,
                "height": height,
                "deviceScaleFactor": 2 if mobile else 1,
                "mobile": mobile,
            },
        )
        if mobile and not self._mobile_emulation:
            if self._default_user_agent is None:
                self._default_user_agent = self.driver.execute_script("return navigator.userAgent")
            self.driver.execute_cdp_cmd("Emulation.setUserAgentOverride", {"userAgent": MOBILE_USER_AGENT})
            self.driver.execute_cdp_cmd("Emulation.setTouchEmulationEnabled", {"enabled": True})
            self._mobile_emulation = True
        elif not mobile and self._mobile_emulation:
            self.driver.execute_cdp_cmd("Emulation.setUserAgentOverride", {"userAgent": self._default_user_agent})
            self.driver.execute_cdp_cmd("Emulation.setTouchEmulationEnabled", {"enabled": False})
            self._mobile_emulation = False

    def navigate(self, url: str, timeout: int) -> None:
        self.driver.set_page_load_timeout(timeout)
        try:
            self.driver.get(url)
        except (TimeoutException, WebDriverException) as e:
            message = _message(e)
            logger.warning(f"Navigation to {url} failed: {message}")
            raise NavigationError(message) from e

    def reload(self) -> None:
        try:
            self.driver.refresh()
        except (TimeoutException, WebDriverException) as e:
            raise NavigationError(_message(e)) from e

    def screenshot(self) -> bytes:
        """Full-page PNG of the current viewport emulation, clipped to the document size."""
        try:
            metrics = self.driver.execute_cdp_cmd("Page.getLayoutMetrics", {})
            content = metrics.get("cssContentSize") or metrics["contentSize"]
            result = self.driver.execute_cdp_cmd(
                "Page.captureScreenshot",
                {
                    "format": "png",
                    "captureBeyondViewport": True,
                    "fromSurface": True,
                    "clip": {
                        "x": 0,
                        "y": 0,
                        "width": math.ceil(content["width"]),
                        "height": math.ceil(content["height"]),
                        "scale": 1,
                    },
                },
            )
        except WebDriverException as e:
            raise NetworkError(f"Screenshot capture failed: {_message(e)}") from e
        return base64.b64decode(result["data"])

    def close(self) -> None:
        try:
            self.driver.quit()
        except Exception as e:
            logger.warning(f"Error closing browser: {e}")


@contextmanager
def browser_session(factory: BrowserFactory) -> Iterator[BrowserSession]:
    try:
        driver = factory()
    except WebDriverException as e:
        raise PipelineError(f"Browser Error: could not launch Chrome: {_message(e)}") from e

    session = BrowserSession(driver)
    try:
        yield session
    finally:
        session.close()
        logger.debug("Browser session closed")
