from localinsights.features.discovery.models.geo_grid import GeoGrid
from localinsights.features.discovery.models.raw_business_data import RawBusinessData
from localinsights.features.discovery.models.scraper_run import ScraperRun, ScraperRunStatus

__all__ = ["GeoGrid", "RawBusinessData", "ScraperRun", "ScraperRunStatus"]
