import logging
from typing import Any, Optional

from localinsights.platform.config import Settings
from localinsights.platform.exceptions import StorageError

logger = logging.getLogger(__name__)


def screenshot_path(business_id: str, device: str, timestamp_ms: int) -> str:
    """Object key for a business screenshot."""
    return f"businesses/{business_id}/{device}-{timestamp_ms}.png"


class ScreenshotStorage:
    """
    Thin wrapper around a Supabase storage bucket.

    Every failure is surfaced as StorageError with a "Storage Error: " prefix so
    the audit job fails instead of silently losing screenshots.
    """

    def __init__(self, client: Any, bucket: str = "public"):
        self.client = client
        self.bucket = bucket

    def upload(self, path: str, data: bytes, content_type: str = "image/png") -> str:
        try:
            self.client.storage.from_(self.bucket).upload(
                path=path,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.error(f"Failed to upload {path} to bucket {self.bucket}: {message}")
            raise StorageError(f"Storage Error: {message}") from e

        logger.info(f"Uploaded {path} ({len(data)} bytes) to bucket {self.bucket}")
        return path

    def public_url(self, path: str) -> Optional[str]:
        try:
            return self.client.storage.from_(self.bucket).get_public_url(path)
        except Exception as e:
            logger.warning(f"Could not resolve public url for {path}: {e}")
            return None


def create_screenshot_storage(settings: Settings) -> ScreenshotStorage:
    from supabase import create_client

    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise StorageError(
            "Storage Error: SUPABASE_URL and SUPABASE_SERVICE_KEY must be set to store screenshots"
        )

    client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    return ScreenshotStorage(client, bucket=settings.SCREENSHOT_BUCKET)
