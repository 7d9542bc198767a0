import logging

from fastapi import FastAPI

from localinsights.api_routers.v1 import api_router
from localinsights.features.health.routes.health import router as health_router
from localinsights.platform.config import settings

# Configure logging to show INFO level messages
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Job status and health for the discovery and website audit workers",
    version="1.0.0",
)


@app.get("/", tags=["Info"])
def root():
    return {
        "app_name": settings.APP_NAME,
        "version": "1.0.0",
        "docs_url": "/docs",
        "api_base": "/api/v1",
    }


app.include_router(health_router)
app.include_router(api_router, prefix="/api/v1")
