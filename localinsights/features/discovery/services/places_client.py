import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from localinsights.features.discovery.schemas.grid_search import Coordinates
from localinsights.platform.exceptions import NetworkError, ValidationError

logger = logging.getLogger(__name__)

OK_STATUSES = ("OK", "ZERO_RESULTS")


class PlacesClient:
    """
    Google Places Nearby Search over HTTP.

    Keys are tried in order; a key answering OVER_QUERY_LIMIT hands the request
    to the next one. Any transport failure or unexpected API status raises
    NetworkError so the job is retried with backoff.
    """

    def __init__(
        self,
        api_keys: List[str],
        base_url: str = "https://maps.googleapis.com/maps/api/place",
        timeout: float = 5.0,
        max_pages: int = 3,
        page_token_delay: float = 2.0,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_keys = list(api_keys)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_pages = max_pages
        self.page_token_delay = page_token_delay
        self.http = http_client or httpx.Client()
        self.sleep = sleep

    def search_nearby(
        self,
        center: Coordinates,
        radius: float,
        category: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return every place around ``center``, following next_page_token pagination."""
        params: Dict[str, Any] = {
            "location": f"{center.lat},{center.lng}",
            "radius": int(radius),
        }
        if category:
            params["type"] = category

        places: List[Dict[str, Any]] = []
        page_token = None

        for page in range(self.max_pages):
            if page_token:
                # Google rejects a next_page_token used right after it is issued
                self.sleep(self.page_token_delay)
                data = self._get("nearbysearch", {"pagetoken": page_token})
            else:
                data = self._get("nearbysearch", params)

            results = data.get("results") or []
            places.extend(results)
            logger.debug(f"Places page {page + 1} returned {len(results)} results")

            page_token = data.get("next_page_token")
            if not page_token:
                break

        return places

    def get_place_details(self, place_id: str, fields: Optional[List[str]] = None) -> Dict[str, Any]:
        fields = fields or [
            "name", "formatted_address", "geometry", "business_status",
            "formatted_phone_number", "international_phone_number", "opening_hours",
            "rating", "user_ratings_total", "types", "website", "url", "vicinity",
            "address_components",
        ]
        data = self._get("details", {"place_id": place_id, "fields": ",".join(fields)})
        return data.get("result") or {}

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_keys:
            raise ValidationError("GOOGLE_MAPS_API_KEYS is not configured")

        url = f"{self.base_url}/{path}/json"
        last_status = None

        for index, key in enumerate(self.api_keys):
            try:
                response = self.http.get(url, params={**params, "key": key}, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                logger.error(f"Places API {path} returned HTTP {status_code}")
                raise NetworkError(f"Places API {path} HTTP error {status_code}") from e
            except httpx.TimeoutException as e:
                logger.warning(f"Places API {path} timed out after {self.timeout}s")
                raise NetworkError(f"Places API {path} timed out after {self.timeout}s") from e
            except httpx.RequestError as e:
                logger.error(f"Places API {path} network error: {type(e).__name__}: {e}")
                raise NetworkError(f"Places API {path} unreachable: {e}") from e
            except ValueError as e:
                raise NetworkError(f"Places API {path} returned invalid JSON") from e

            status = data.get("status")
            if status in OK_STATUSES:
                return data

            last_status = status
            if status == "OVER_QUERY_LIMIT":
                logger.warning(f"Places API key #{index + 1} over query limit, rotating")
                continue

            message = data.get("error_message") or "no error message"
            logger.error(f"Places API {path} status={status} error={message}")
            raise NetworkError(f"Places API {path} status={status} error={message}")

        raise NetworkError(f"Places API {path} status={last_status} on all {len(self.api_keys)} keys")
