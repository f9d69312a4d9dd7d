# chargehub/main.py
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from chargehub.api.responses import error_response
from chargehub.api.routes import router as api_router
from chargehub.config.charging_config import charging_settings
from chargehub.db.database import execute_query, init_db
from chargehub.services.charging_scheduler import ChargingScheduler

# Configure logger with explicit level
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("chargehub")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle events."""
    logger.info("🚀 LIFESPAN STARTING...")

    try:
        logger.info("📊 Initializing database...")
        if not init_db():
            raise RuntimeError("Database initialization failed")
        logger.info("✅ Database initialization complete")

        scheduler = ChargingScheduler()
        app.state.scheduler = scheduler
        if charging_settings.scheduler_enabled:
            await scheduler.start()
        else:
            logger.info("⏸️ Charging scheduler disabled by configuration")

        logger.info("🎯 Charging backend starting up")

    except Exception as e:
        logger.error(f"Error during application startup: {str(e)}", exc_info=True)
        raise

    yield

    logger.info("🛑 Charging backend shutting down")
    if app.state.scheduler.is_running:
        await app.state.scheduler.stop()


app = FastAPI(
    title="ChargeHub Charging Backend",
    description="Charging sessions, reservations and the background charging scheduler",
    version="1.0",
    lifespan=lifespan
)

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=charging_settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as 400 with the usual error shape."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return error_response(status.HTTP_400_BAD_REQUEST, "; ".join(messages))


app.include_router(api_router)


# Root endpoint for health check
@app.get("/")
async def root():
    """Root endpoint for health checking."""
    return {
        "status": "running",
        "message": "ChargeHub charging backend is running",
        "version": "1.0",
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        execute_query("SELECT 1")
        database = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {str(e)}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "services": {
            "database": database,
        },
    }
