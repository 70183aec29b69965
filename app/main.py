"""
Booking Cache - Main FastAPI Application
Serves the cached booking record, refreshing from the upstream as needed
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from app.booking.errors import StoreError
from app.booking.service import BookingService
from app.booking.transport import HttpBookingTransport
from app.cache import BookingDataManager, PersistentCacheStore, SQLKeyValueStore
from app.db import init_db, make_engine, make_session_factory
from app.schemas import BookingResponse, ErrorPayload, ExpiryPayload
from config.settings import Settings, settings

load_dotenv()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger("booking.api")

# Version tracking
APP_VERSION = "v0.1.0"
APP_NAME = "Booking Cache"


def build_booking_manager(config: Settings) -> BookingDataManager:
    """Wire store, upstream, and manager from settings."""
    engine = make_engine(config.database_url)
    init_db(engine)
    store = PersistentCacheStore(
        SQLKeyValueStore(make_session_factory(engine)),
        key=config.booking_cache_key,
        default_ttl_ms=config.cache_ttl_seconds * 1000,
    )
    service = BookingService(
        HttpBookingTransport(config.booking_api_url, timeout=config.booking_api_timeout_seconds),
        max_retries=config.upstream_max_retries,
        base_delay_ms=config.upstream_base_delay_ms,
        default_expiry_seconds=config.default_expiry_seconds,
        honor_upstream_expiry=config.honor_upstream_expiry,
    )
    return BookingDataManager(
        store,
        service,
        background_delay_ms=config.background_refresh_delay_ms,
        join_timeout=config.join_timeout_seconds,
    )


def get_booking_manager(request: Request) -> BookingDataManager:
    """Dependency: the application's single manager instance."""
    return request.app.state.booking_manager


def _booking_response(manager: BookingDataManager, force_refresh: bool) -> JSONResponse:
    result = manager.get_data(force_refresh=force_refresh)
    payload = BookingResponse.from_result(result)
    # No data at all, fresh or cached
    status_code = 200 if result.data is not None else 503
    return JSONResponse(status_code=status_code, content=payload.model_dump())


def create_app(manager: Optional[BookingDataManager] = None) -> FastAPI:
    """
    Create the application.

    Args:
        manager: Prebuilt manager; built from settings at startup when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_manager = getattr(app.state, "booking_manager", None) is None
        if owns_manager:
            app.state.booking_manager = build_booking_manager(settings)
            logger.info(f"Booking manager started (upstream: {settings.booking_api_url})")
        yield
        if owns_manager:
            app.state.booking_manager.shutdown(wait=False)

    app = FastAPI(
        title=APP_NAME,
        description="Stale-while-revalidate cache for the booking record",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.booking_manager = manager

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": APP_VERSION}

    @app.get("/booking")
    def get_booking(
        force_refresh: bool = Query(False, description="Bypass the cache"),
        manager: BookingDataManager = Depends(get_booking_manager),
    ):
        """Get the booking, from cache when valid."""
        return _booking_response(manager, force_refresh)

    @app.post("/booking/refresh")
    def refresh_booking(manager: BookingDataManager = Depends(get_booking_manager)):
        """Force a fetch from the upstream."""
        return _booking_response(manager, force_refresh=True)

    @app.delete("/booking/cache")
    def clear_booking_cache(manager: BookingDataManager = Depends(get_booking_manager)):
        """Remove the cached booking."""
        try:
            manager.clear_cache()
        except StoreError as e:
            logger.error(f"Failed to clear booking cache: {e}")
            return JSONResponse(
                status_code=500,
                content={"error": ErrorPayload.from_error(e).model_dump()},
            )
        return {"status": "cleared"}

    @app.get("/booking/expiry", response_model=ExpiryPayload)
    def booking_expiry(manager: BookingDataManager = Depends(get_booking_manager)):
        """Domain expiry of the current booking."""
        result = manager.get_data()
        if result.data is None:
            raise HTTPException(status_code=503, detail=ErrorPayload.from_error(result.error).model_dump())
        return ExpiryPayload.from_info(manager.get_expiry_info(result.data))

    @app.get("/cache/stats")
    def cache_stats(manager: BookingDataManager = Depends(get_booking_manager)):
        """Get cache statistics."""
        return manager.get_stats()

    return app


app = create_app()
