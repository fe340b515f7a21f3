"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Clients and services built during lifespan, stored in app.state
    - Dependency functions retrieve from request.app.state
    - Clients closed on shutdown, no module-level singletons
"""

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Header, Request

from chapter_dashboard.config import Settings, get_settings
from chapter_dashboard.exceptions import AuthenticationError, AuthorizationError
from chapter_dashboard.handlers import ChapterHandler
from chapter_dashboard.protocols import CacheStore, ChapterStore
from chapter_dashboard.repositories import MongoChapterRepository, RedisCacheRepository
from chapter_dashboard.services import ChapterService, RateLimiter, ResponseCache

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """Address of the connected client, used as the rate-limit identity."""
    return request.client.host if request.client else "unknown"


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_handler(request: Request) -> ChapterHandler:
    """Dependency injection for ChapterHandler from app.state.

    Args:
        request: FastAPI Request object

    Returns:
        The ChapterHandler instance from app.state

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "chapter_handler", None)
    if handler is None:
        raise RuntimeError("ChapterHandler not initialized. Check lifespan setup.")
    return handler


def admin_rate_limit(request: Request) -> None:
    """Count the request against the caller's admin budget.

    Raises:
        RateLimitError: If the admin budget is exhausted
    """
    limiter: RateLimiter | None = getattr(request.app.state, "admin_rate_limiter", None)
    if limiter is not None:
        limiter.hit(client_ip(request))


def require_admin(
    request: Request,
    x_admin_key: Annotated[str | None, Header()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Accept either "x-admin-key: <secret>" or "Authorization: Bearer <secret>".

    Raises:
        AuthenticationError: If no credential is supplied (401)
        AuthorizationError: If the credential does not match (403)
    """
    supplied = x_admin_key
    if not supplied and authorization:
        supplied = authorization.removeprefix("Bearer ").strip()

    if not supplied:
        raise AuthenticationError(
            "Admin authentication required. Please provide x-admin-key header "
            "or Authorization header with Bearer token."
        )

    expected = get_app_settings(request).admin_secret_key
    if not secrets.compare_digest(supplied.encode(), expected.encode()):
        raise AuthorizationError("Invalid admin credentials")


def init_app_state(
    app: FastAPI,
    config: Settings,
    chapter_store: ChapterStore,
    cache_store: CacheStore,
) -> None:
    """Build every layer on top of the given stores and store it in app.state.

    1. Response cache and rate limiters over the cache store
    2. Service (business logic) over the chapter store
    3. Handler (HTTP) over the service
    """
    response_cache = ResponseCache(
        store=cache_store,
        namespace=config.cache_namespace,
        default_ttl=config.cache_ttl,
        expose_keys=config.is_development,
    )
    chapter_service = ChapterService.create(
        store=chapter_store,
        response_cache=response_cache,
        years=config.valid_years,
    )

    app.state.settings = config
    app.state.chapter_store = chapter_store
    app.state.cache_store = cache_store
    app.state.response_cache = response_cache
    app.state.chapter_service = chapter_service
    app.state.chapter_handler = ChapterHandler(
        chapter_service=chapter_service,
        response_cache=response_cache,
        cache_ttl=config.cache_ttl,
        stats_cache_ttl=config.stats_cache_ttl,
        max_upload_bytes=config.max_upload_bytes,
    )
    app.state.rate_limiter = RateLimiter(
        store=cache_store,
        limit=config.rate_limit_max,
        window=config.rate_limit_window,
    )
    app.state.admin_rate_limiter = RateLimiter(
        store=cache_store,
        limit=config.admin_rate_limit_max,
        window=config.rate_limit_window,
        identity_prefix="admin_",
        message="Too many admin requests from this IP, please try again after a minute.",
    )


def clear_app_state(app: FastAPI) -> None:
    for name in (
        "chapter_handler",
        "chapter_service",
        "response_cache",
        "rate_limiter",
        "admin_rate_limiter",
        "chapter_store",
        "cache_store",
    ):
        if hasattr(app.state, name):
            delattr(app.state, name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Connects to MongoDB and Redis, builds all layers into app.state, and
    closes both clients on shutdown. MongoDB must be reachable at startup;
    Redis may be down, in which case the API runs without cache and without
    rate limiting until it comes back.

    Args:
        app: The FastAPI application instance

    Yields:
        None
    """
    config: Settings = getattr(app.state, "settings", None) or get_settings()

    chapter_store: MongoChapterRepository | None = None
    cache_store: RedisCacheRepository | None = None
    try:
        chapter_store = MongoChapterRepository.create(config)
        cache_store = RedisCacheRepository.create(config)

        chapter_store.ensure_indexes()
        logger.info("Connected to MongoDB database %s", config.mongodb_database)

        if cache_store.health_check():
            logger.info("Connected to Redis at %s", config.redis_url)
        else:
            logger.error("Redis unavailable at %s, continuing without cache", config.redis_url)

        init_app_state(app, config, chapter_store, cache_store)
        logger.info("Chapter service initialized (cache namespace: %s)", config.cache_namespace)

        yield
    finally:
        clear_app_state(app)
        if cache_store is not None:
            cache_store.close()
        if chapter_store is not None:
            chapter_store.close()
        logger.info("Chapter service shut down")


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[ChapterHandler, Depends(get_handler)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
AdminDeps = [Depends(admin_rate_limit), Depends(require_admin)]
