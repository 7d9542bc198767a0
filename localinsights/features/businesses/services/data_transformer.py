"""
Data Transformer

Maps provider-specific raw payloads onto canonical Business fields.

Each provider shape is a payload class with an ``extract()`` method. The class
is picked from the explicit source tag stored on the raw record, never by
sniffing the payload. Extraction never raises: a missing or malformed field
becomes None (or an empty list) and the original payload is carried along.
"""
import logging
from typing import Any, Dict, List, Optional, Type

from localinsights.features.businesses.schemas.business import UNKNOWN_BUSINESS_NAME, BusinessFields
from localinsights.features.discovery.schemas.grid_search import Coordinates

logger = logging.getLogger(__name__)

# Place types too broad to be used as a business category
GENERIC_PLACE_TYPES = {"point_of_interest", "establishment"}


def _dig(data: Any, *path: Any) -> Any:
    for key in path:
        if isinstance(data, dict):
            data = data.get(key)
        elif isinstance(data, list) and isinstance(key, int):
            data = data[key] if -len(data) <= key < len(data) else None
        else:
            return None
    return data


def _first(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any) -> int:
    number = _float(value)
    return int(number) if number is not None else 0


def _text_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _coordinates(lat: Any, lng: Any) -> Optional[Coordinates]:
    lat, lng = _float(lat), _float(lng)
    if lat is None or lng is None:
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return Coordinates(lat=lat, lng=lng)


def _primary_category(categories: List[str]) -> Optional[str]:
    for category in categories:
        if category not in GENERIC_PLACE_TYPES:
            return category
    return categories[0] if categories else None


class ProviderPayload:
    """Base of the raw payload variants."""

    source_type = "generic"

    def __init__(self, raw: Any):
        self.raw = raw if isinstance(raw, dict) else {}

    def extract(self) -> BusinessFields:
        raise NotImplementedError


class GooglePlacesPayload(ProviderPayload):
    source_type = "google_places"

    def _city(self) -> Optional[str]:
        components = self.raw.get("address_components")
        if not isinstance(components, list):
            return None
        for component in components:
            if isinstance(component, dict) and "locality" in (component.get("types") or []):
                return _text(component.get("long_name"))
        return None

    def extract(self) -> BusinessFields:
        raw = self.raw
        categories = _text_list(raw.get("types"))
        photos = raw.get("photos") if isinstance(raw.get("photos"), list) else []

        return BusinessFields(
            name=_text(raw.get("name")) or UNKNOWN_BUSINESS_NAME,
            address=_text(_first(raw, "formatted_address", "vicinity")),
            city=self._city(),
            category=_primary_category(categories),
            categories=categories,
            phone=_text(_first(raw, "formatted_phone_number", "international_phone_number")),
            website=_text(raw.get("website")),
            location=_coordinates(_dig(raw, "geometry", "location", "lat"), _dig(raw, "geometry", "location", "lng")),
            status=_text(raw.get("business_status")) or "OPERATIONAL",
            hours=_text_list(_dig(raw, "opening_hours", "weekday_text")) or None,
            photo_urls=_text_list([_dig(photo, "photo_reference") for photo in photos]),
            rating=_float(raw.get("rating")),
            rating_count=_int(raw.get("user_ratings_total")),
            raw_data=raw,
        )


class ReviewSitePayload(ProviderPayload):
    """Yelp Fusion business shape."""

    source_type = "yelp"

    def _hours(self) -> Optional[List[str]]:
        periods = _dig(self.raw, "hours", 0, "open")
        if not isinstance(periods, list):
            return None
        hours = [
            f"{period.get('day')}: {period.get('start')} - {period.get('end')}"
            for period in periods
            if isinstance(period, dict)
        ]
        return hours or None

    def extract(self) -> BusinessFields:
        raw = self.raw
        aliases = [_dig(category, "alias") for category in raw.get("categories") or [] if isinstance(category, dict)]
        categories = _text_list(aliases)
        address = ", ".join(_text_list(_dig(raw, "location", "display_address")))
        is_closed = raw.get("is_closed")

        return BusinessFields(
            name=_text(raw.get("name")) or UNKNOWN_BUSINESS_NAME,
            address=address or None,
            city=_text(_dig(raw, "location", "city")),
            category=_primary_category(categories),
            categories=categories,
            phone=_text(_first(raw, "phone", "display_phone")),
            website=_text(raw.get("url")),
            location=_coordinates(_dig(raw, "coordinates", "latitude"), _dig(raw, "coordinates", "longitude")),
            status="CLOSED" if is_closed is True else "OPERATIONAL",
            hours=self._hours(),
            photo_urls=_text_list(raw.get("photos")),
            rating=_float(raw.get("rating")),
            rating_count=_int(raw.get("review_count")),
            raw_data=raw,
        )


class GenericPayload(ProviderPayload):
    """Unknown provider: try the common key names for every field."""

    def _location(self) -> Optional[Coordinates]:
        location = _first(self.raw, "location", "coordinates", "geo")
        if not isinstance(location, dict):
            return _coordinates(self.raw.get("latitude"), self.raw.get("longitude"))
        return _coordinates(
            _first(location, "lat", "latitude"),
            _first(location, "lng", "lon", "longitude"),
        )

    def extract(self) -> BusinessFields:
        raw = self.raw
        categories = _text_list(_first(raw, "categories", "types", "category"))

        return BusinessFields(
            name=_text(_first(raw, "name", "business_name", "title")) or UNKNOWN_BUSINESS_NAME,
            address=_text(_first(raw, "address", "formatted_address", "street_address")),
            city=_text(_first(raw, "city", "locality")),
            category=_primary_category(categories),
            categories=categories,
            phone=_text(_first(raw, "phone", "phone_number", "telephone")),
            website=_text(_first(raw, "website", "url", "site")),
            location=self._location(),
            status=_text(raw.get("status")) or "OPERATIONAL",
            hours=_text_list(raw.get("hours")) or None,
            photo_urls=_text_list(_first(raw, "photos", "photo_urls", "images")),
            rating=_float(raw.get("rating")),
            rating_count=_int(_first(raw, "rating_count", "review_count", "reviews_count")),
            raw_data=raw,
        )


PAYLOAD_TYPES: Dict[str, Type[ProviderPayload]] = {
    "google_places": GooglePlacesPayload,
    "google-places": GooglePlacesPayload,
    "yelp": ReviewSitePayload,
}


def payload_for_source(source_type: Optional[str], raw: Any) -> ProviderPayload:
    payload_class = PAYLOAD_TYPES.get((source_type or "").strip().lower(), GenericPayload)
    return payload_class(raw)


def transform_business_data(source_type: Optional[str], raw: Any) -> BusinessFields:
    payload = payload_for_source(source_type, raw)
    fields = payload.extract()
    logger.debug(f"Transformed {payload.source_type} payload into business '{fields.name}'")
    return fields
