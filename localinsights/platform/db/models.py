"""Import every model so SQLAlchemy mappers and metadata are complete."""

from localinsights.platform.db.base import Base  # noqa: F401
from localinsights.features.discovery.models import GeoGrid, RawBusinessData, ScraperRun  # noqa: F401
from localinsights.features.businesses.models import Business  # noqa: F401
from localinsights.features.audit.models import WebsiteAudit  # noqa: F401
