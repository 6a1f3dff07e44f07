import uvicorn
from fastapi import FastAPI


from app.api.v1.routes_health import router as health_router
from app.api.v1.routes_alerts import router as alerts_router
from app.api.v1.routes_analysis import router as analysis_router

from app.db.init_db import init_db
from app.core.config import settings
from app.core.logging import configure_logging


app = FastAPI(
    title="SoC Identity Correlation",
    version="0.1.0",
    description="Links users to network addresses across security logs around an alert.",
)

@app.on_event("startup")
def on_startup() -> None:
    configure_logging()
    # Create DB tables if they don't exist (dev only)
    init_db()

@app.get("/", tags=["root"])
async def root() -> dict:
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
    }


# API v1
app.include_router(health_router, prefix="/api/v1")
app.include_router(alerts_router, prefix="/api/v1")
app.include_router(analysis_router, prefix="/api/v1")


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
