from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from carmarket.auth.auth_handler import ensure_jwt_secret
from carmarket.core.cache import redis_client
from carmarket.core.config import CORS_ALLOWED_ORIGINS
from carmarket.core.db import engine, init_models
from carmarket.core.logging import setup_logging
from carmarket.exceptions import (
    ValidationError,
    http_exception_handler,
    marketplace_exception_handler,
    rate_limit_exception_handler,
    request_validation_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from carmarket.middleware.rate_limit import limiter
from carmarket.routers import admin, auth, cars, dealers, favorites, health, images, metrics, public
from carmarket.services.exceptions import MarketplaceError

setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_jwt_secret()
    await init_models()
    logger.info("CarMarket API started")
    try:
        yield
    finally:
        # teardown on shutdown
        await redis_client.aclose()
        await engine.dispose()


app = FastAPI(title="CarMarket API", version="1.0.0", lifespan=lifespan)

app.state.limiter = limiter

# Register exception handlers
app.add_exception_handler(MarketplaceError, marketplace_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],   # Allows POST, GET, OPTIONS, etc
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(auth.router)
app.include_router(cars.router)
app.include_router(dealers.router)
app.include_router(favorites.router)
app.include_router(images.router)
app.include_router(admin.router)
app.include_router(public.router)
