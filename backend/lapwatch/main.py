"""
Lap Time Tracker - FastAPI Backend

Main application entry point. The lifespan handler opens the lap database
and starts the UDP telemetry listener alongside the HTTP API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lapwatch.api.laps import router as laps_router
from lapwatch.config import Settings
from lapwatch.errors import ListenerFault
from lapwatch.services.listener import TelemetryListener
from lapwatch.services.repository import init_repository


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


APP_NAME = "Lap Time Tracker"
APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings = Settings.from_env()
    logger.info(f"Starting {APP_NAME}")

    repo = init_repository(settings.db_path)
    app.state.listener = None

    if settings.listener_enabled:
        listener = TelemetryListener(
            repo,
            host=settings.udp_host,
            port=settings.udp_port,
            sim=settings.sim,
            store_timeout_s=settings.store_timeout_s,
            reset_on_session_change=settings.reset_on_session_change,
        )
        try:
            await listener.start()
        except ListenerFault as e:
            logger.error(f"Telemetry listener failed to start: {e}")
            raise
        app.state.listener = listener
    else:
        logger.info("Telemetry listener disabled")

    yield

    # Shutdown
    logger.info(f"Shutting down {APP_NAME}")
    if app.state.listener is not None:
        await app.state.listener.stop()


# Create FastAPI app
app = FastAPI(
    title=APP_NAME,
    description="""
    Records personal-best lap times from a racing simulator's UDP telemetry.

    ## Data Flow
    1. The simulator broadcasts JSON scoring packets over UDP
    2. Completed laps are detected from the player's last lap time
    3. Laps faster than the stored personal best are saved
    4. Stored laps are served via /api/lap-times and /api/stats
    """,
    version=APP_VERSION,
    lifespan=lifespan,
)


# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(laps_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    from lapwatch.services.repository import get_repository
    repo = get_repository()
    listener = getattr(app.state, "listener", None)

    return {
        "status": "healthy",
        "db_path": str(repo.db_path),
        "listener_running": bool(listener and listener.is_running),
    }
