"""
Bus Tracker Service - Main Application
Buses report GPS positions; dashboards read them back
"""

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
import logging

from .auth import BearerAuth, JWTVerifier, require_admin, require_token
from .config import Settings, settings as default_settings
from .dynamo_store import DynamoStore
from .errors import Internal, ServiceError
from .ingestion import LocationIngestionService
from .mapview import render_map
from .memory_store import InMemoryStore
from .models import (
    Bus, BusCreate, BusCreated, BusDeactivated, HealthStatus,
    LatestLocation, LocationCreate, LocationCreated, LocationRecord,
)
from .query import LocationQueryService
from .registry import BusRegistry

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

VIEW_ERROR_MESSAGE = "Failed to fetch data from database"


def build_store(app_settings: Settings):
    """Create the store selected by STORE_BACKEND"""
    if app_settings.STORE_BACKEND == "memory":
        return InMemoryStore()
    if app_settings.STORE_BACKEND == "dynamodb":
        return DynamoStore(
            bus_table=app_settings.BUS_TABLE_NAME,
            location_table=app_settings.LOCATION_TABLE_NAME,
            region=app_settings.AWS_REGION,
            endpoint_url=app_settings.DYNAMODB_ENDPOINT_URL,
            recorded_at_index=app_settings.LOCATION_RECORDED_AT_INDEX,
            aws_access_key_id=app_settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=app_settings.AWS_SECRET_ACCESS_KEY
        )
    raise ValueError(f"Unknown STORE_BACKEND: {app_settings.STORE_BACKEND}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    logger.info(f"Starting {app.state.settings.SERVICE_NAME} service...")

    # Connectivity check; a failure is logged but does not stop startup
    try:
        if await app.state.store.health_check():
            logger.info("Successfully connected to the data store")
        else:
            logger.error("Failed to connect to the data store")
    except Exception as e:
        logger.error(f"Failed to connect to the data store: {str(e)}")

    yield

    logger.info(f"Shutting down {app.state.settings.SERVICE_NAME} service...")


def create_app(store=None, app_settings: Optional[Settings] = None, verifier=None) -> FastAPI:
    """
    Build the FastAPI application.

    The store and token verifier are injected so tests can substitute an
    InMemoryStore and a fake identity provider.
    """
    app_settings = app_settings or default_settings
    logging.basicConfig(level=app_settings.LOG_LEVEL.upper())

    if store is None:
        store = build_store(app_settings)
    if verifier is None:
        verifier = JWTVerifier(app_settings.JWT_SECRET, app_settings.JWT_ALGORITHM)

    app = FastAPI(
        title="Bus Tracker Service",
        description="Bus GPS location ingestion and retrieval",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.settings = app_settings
    app.state.store = store
    app.state.registry = BusRegistry(store, timezone=app_settings.TIMEZONE)
    app.state.ingestion = LocationIngestionService(
        store,
        timezone=app_settings.TIMEZONE,
        strict_timestamps=app_settings.STRICT_TIMESTAMPS
    )
    app.state.query = LocationQueryService(store)
    app.state.auth = BearerAuth(
        enabled=app_settings.AUTH_ENABLED,
        admin_api_key=app_settings.ADMIN_API_KEY,
        verifier=verifier
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    register_exception_handlers(app)
    return app


def register_routes(app: FastAPI) -> None:

    @app.get("/", response_model=dict)
    async def root(request: Request):
        """Root endpoint"""
        return {
            "service": request.app.state.settings.SERVICE_NAME,
            "version": "1.0.0",
            "status": "running"
        }

    @app.get("/health", response_model=HealthStatus)
    async def health_check(request: Request):
        """Health check endpoint"""
        health = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {}
        }

        try:
            store_healthy = await request.app.state.store.health_check()
        except Exception as e:
            logger.error(f"Health check error: {str(e)}")
            store_healthy = False
        health["components"]["store"] = "healthy" if store_healthy else "unhealthy"

        if not store_healthy:
            health["status"] = "unhealthy"
            return JSONResponse(content=health, status_code=503)

        return HealthStatus(**health)

    @app.post("/buses", response_model=BusCreated, status_code=201)
    async def register_bus(
        body: BusCreate,
        request: Request,
        principal=Depends(require_admin)
    ):
        """Register a new bus"""
        bus = await request.app.state.registry.register(body.bus_id, body.name)
        return BusCreated(bus_id=bus.bus_id, name=bus.name)

    @app.get("/buses", response_model=List[Bus])
    async def list_buses(
        request: Request,
        active_only: bool = False,
        principal=Depends(require_token)
    ):
        """Get all registered buses"""
        return await request.app.state.registry.list(active_only=active_only)

    @app.get("/buses/{bus_id}", response_model=Bus)
    async def get_bus(bus_id: str, request: Request, principal=Depends(require_token)):
        """Get a specific bus"""
        return await request.app.state.registry.get(bus_id)

    @app.put("/buses/{bus_id}/deactivate", response_model=BusDeactivated)
    async def deactivate_bus(bus_id: str, request: Request, principal=Depends(require_admin)):
        """Deactivate a bus; it can no longer report locations"""
        bus = await request.app.state.registry.deactivate(bus_id)
        return BusDeactivated(bus_id=bus.bus_id, active=bus.active)

    @app.get("/buses/{bus_id}/location", response_model=LatestLocation)
    async def get_latest_location(bus_id: str, request: Request, principal=Depends(require_token)):
        """Get latest location for a bus"""
        location = await request.app.state.query.latest(bus_id)
        if location is None:
            return LatestLocation(bus_id=bus_id, location=None, message="No location data")
        return LatestLocation(bus_id=bus_id, location=location)

    @app.post("/locations", response_model=LocationCreated, status_code=201)
    async def add_location(body: LocationCreate, request: Request, principal=Depends(require_token)):
        """Report a bus position"""
        record = await request.app.state.ingestion.ingest(
            body.bus_id,
            body.latitude,
            body.longitude,
            body.recorded_at
        )
        return LocationCreated(location_id=record.id, location=record)

    @app.get("/locations", response_model=List[LocationRecord])
    async def list_locations(
        request: Request,
        bus_id: Optional[str] = None,
        principal=Depends(require_token)
    ):
        """Get location history for one bus or for all buses"""
        return await request.app.state.query.list(bus_id)

    @app.get("/bus-locations", response_class=HTMLResponse)
    async def bus_locations_view(request: Request, principal=Depends(require_token)):
        """Listing of active buses with their locations"""
        try:
            entries = await request.app.state.query.list_with_buses()
            return templates.TemplateResponse(request, "bus_locations.html", {"entries": entries})
        except Exception as e:
            logger.error(f"Error rendering bus locations: {str(e)}")
            return PlainTextResponse(VIEW_ERROR_MESSAGE, status_code=500)

    @app.get("/bus-locations/map", response_class=HTMLResponse)
    async def bus_locations_map(request: Request, principal=Depends(require_token)):
        """Folium map of active buses and their tracks"""
        try:
            entries = await request.app.state.query.list_with_buses()
            return HTMLResponse(render_map(entries))
        except Exception as e:
            logger.error(f"Error rendering bus locations map: {str(e)}")
            return PlainTextResponse(VIEW_ERROR_MESSAGE, status_code=500)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if isinstance(exc, Internal):
            logger.error(f"Internal error on {request.url.path}: {exc.message}")
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})

        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message},
            headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        logger.warning(f"Invalid request to {request.url.path}: {problems}")
        return JSONResponse(status_code=400, content={"detail": "; ".join(problems)})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )


app = create_app()
