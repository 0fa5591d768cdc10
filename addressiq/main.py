import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from addressiq.api.routes import admin, health, search, stream
from addressiq.api.routes import property as property_routes
from addressiq.core.build_info import BuildInfo
from addressiq.core.config import Settings, get_settings
from addressiq.core.data_sources import ADAPTERS, AdapterSpec
from addressiq.core.errors import AddressNotFound, ConfigMissing
from addressiq.core.logging import configure_logging, get_logger
from addressiq.services.aggregator import PropertyAggregator
from addressiq.services.cache import Cache, build_cache

logger = get_logger(__name__)

DEV_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def create_app(
    settings: Settings | None = None,
    *,
    registry: tuple[AdapterSpec, ...] | None = None,
    cache: Cache | None = None,
    build_info: BuildInfo | None = None,
) -> FastAPI:
    configure_logging()
    settings = settings or get_settings()
    cache = cache or build_cache(settings.redis_url)
    aggregator = PropertyAggregator(settings, cache=cache, registry=registry or ADAPTERS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        aggregator.close()
        cache.close()
        logger.info("shutdown complete")

    app = FastAPI(title="AddressIQ Backend", version="2.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.cache = cache
    app.state.aggregator = aggregator
    app.state.build_info = build_info or BuildInfo.from_settings(settings)

    origins = list(DEV_ORIGINS)
    if settings.frontend_origin:
        origins.append(settings.frontend_origin)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(AddressNotFound, _address_not_found)

    app.include_router(health.router)
    app.include_router(search.router, prefix="/search", tags=["search"])
    app.include_router(stream.router, prefix="/api/search", tags=["search"])
    app.include_router(property_routes.router, prefix="/api/property", tags=["property"])
    app.include_router(admin.router, prefix="/admin", tags=["admin"])

    logger.info("AddressIQ backend ready (%s, %d adapters)", settings.app_env, len(aggregator.registry))
    return app


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": "invalid request parameters"}, status_code=400)


async def _address_not_found(request: Request, exc: AddressNotFound) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=404)


def run() -> None:
    configure_logging()
    try:
        settings = get_settings()
    except ConfigMissing as exc:
        logger.error("cannot start: %s", exc)
        sys.exit(1)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
