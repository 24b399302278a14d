"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cashwatch.config import settings
from cashwatch.alerts import routes as alert_routes
from cashwatch.forecast import routes as forecast_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the monitoring scheduler when enabled."""
    scheduler = None
    if settings.ENABLE_MONITOR_SCHEDULER:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from cashwatch.alerts.scheduler import setup_apscheduler

        scheduler = AsyncIOScheduler()
        setup_apscheduler(scheduler)
        scheduler.start()
        logger.info("Monitoring scheduler started")

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)


# Create FastAPI app
app = FastAPI(
    title="Cashwatch API",
    description="13-week cash flow forecasting and cash gap alerts",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(forecast_routes.router, prefix=f"{settings.API_V1_PREFIX}/forecast", tags=["Forecast"])
app.include_router(alert_routes.router, prefix=f"{settings.API_V1_PREFIX}/alerts", tags=["Alerts"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Cashwatch API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cashwatch.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
