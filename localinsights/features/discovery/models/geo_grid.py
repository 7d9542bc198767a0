from sqlalchemy import Column, String, Float, DateTime, CheckConstraint, Index

from localinsights.platform.db.base import BaseModel


class GeoGrid(BaseModel):
    """A rectangular tile of a city searched by a single grid-search job."""

    __tablename__ = "geo_grids"

    city = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)

    northeast_lat = Column(Float, nullable=False)
    northeast_lng = Column(Float, nullable=False)
    southwest_lat = Column(Float, nullable=False)
    southwest_lng = Column(Float, nullable=False)

    # Search radius (meters) assigned when the region was tiled
    radius = Column(Float, nullable=True)

    last_scraped = Column(DateTime(timezone=True), nullable=True)

    @property
    def bounds(self) -> dict:
        return {
            "northeast": {"lat": self.northeast_lat, "lng": self.northeast_lng},
            "southwest": {"lat": self.southwest_lat, "lng": self.southwest_lng},
        }

    __table_args__ = (
        CheckConstraint(
            "northeast_lat > southwest_lat AND northeast_lng > southwest_lng",
            name="check_geo_grid_bounds",
        ),
        Index("idx_geo_grids_last_scraped", "last_scraped"),
    )
