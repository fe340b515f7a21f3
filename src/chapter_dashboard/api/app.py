import json
import logging
import sys
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from chapter_dashboard.config import Settings, get_settings
from chapter_dashboard.dto import HealthCheckResponse, error_payload, success_payload
from chapter_dashboard.exceptions import PayloadTooLargeError, RateLimitError, UploadFormatError
from chapter_dashboard.handlers import ChapterHandler

from .dependencies import AdminDeps, HandlerDep, SettingsDep, client_ip, lifespan
from .exception_handlers import rate_limit_response, setup_exception_handlers

API_VERSION = "1.0.0"
API_PREFIX = "/api/v1/chapters"
UPLOAD_FIELD = "chapters"
UNTHROTTLED_PATHS = frozenset({"/health", f"{API_PREFIX}/health"})


def configure_logging(config: Settings | None = None) -> None:
    """Configure application logging.

    Console output with timestamps and module names, the configured level for
    chapter_dashboard modules and WARNING for noisy third-party libraries.
    """
    config = config or get_settings()
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    logging.getLogger("chapter_dashboard").setLevel(log_level)

    for noisy in ("pymongo", "urllib3", "httpx", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


async def _read_json_body(request: Request, max_bytes: int) -> Any:
    body = await request.body()
    if len(body) > max_bytes:
        raise PayloadTooLargeError.for_limit("Request body", max_bytes)
    if not body.strip():
        raise UploadFormatError("Request body is empty")
    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise UploadFormatError("Invalid JSON payload", details={"error": str(e)}) from e


async def _read_upload(request: Request, handler: ChapterHandler) -> Any:
    form = await request.form()
    try:
        files = [item for item in form.getlist(UPLOAD_FIELD) if isinstance(item, UploadFile)]
        if len(files) != 1:
            raise UploadFormatError(f"Upload exactly one JSON file in the '{UPLOAD_FIELD}' field")
        upload = files[0]
        content = await upload.read()
        return handler.parse_upload(upload.filename, upload.content_type, content)
    finally:
        await form.close()


router = APIRouter(prefix=API_PREFIX, tags=["chapters"])


@router.get("")
def list_chapters(request: Request, handler: HandlerDep) -> dict[str, Any]:
    """List chapters with filters, pagination and sorting."""
    return handler.list_chapters(request.url.path, request.query_params.multi_items())


@router.get("/health")
def chapters_health(request: Request) -> JSONResponse:
    """Report MongoDB and Redis connectivity."""
    service = getattr(request.app.state, "chapter_service", None)
    cache_store = getattr(request.app.state, "cache_store", None)
    database_ok = service is not None and service.is_healthy()
    cache_ok = cache_store is not None and cache_store.health_check()

    services = {
        "database": "connected" if database_ok else "disconnected",
        "cache": "connected" if cache_ok else "disconnected",
    }
    if database_ok:
        return JSONResponse(success_payload(data=services, message="Chapter service is healthy"))
    return JSONResponse(
        status_code=503,
        content=error_payload("Chapter service is unavailable", data=services),
    )


@router.get("/stats")
def chapter_statistics(request: Request, handler: HandlerDep) -> dict[str, Any]:
    """Aggregate statistics over all chapters."""
    return handler.get_statistics(request.url.path)


@router.get("/{chapter_id}")
def get_chapter(chapter_id: str, request: Request, handler: HandlerDep) -> dict[str, Any]:
    return handler.get_chapter(request.url.path, chapter_id)


@router.post("", dependencies=AdminDeps)
async def create_chapters(request: Request, handler: HandlerDep, config: SettingsDep) -> JSONResponse:
    """Bulk-create chapters from a JSON array body or an uploaded JSON file.

    Returns 201 if at least one chapter was saved, 400 otherwise; the body
    lists every saved chapter and every rejected item.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        raw_items = await _read_upload(request, handler)
    else:
        raw_items = await _read_json_body(request, config.max_upload_bytes)

    status_code, payload = await run_in_threadpool(handler.create_chapters, raw_items)
    return JSONResponse(status_code=status_code, content=payload)


@router.put("/{chapter_id}", dependencies=AdminDeps)
async def replace_chapter(
    chapter_id: str, request: Request, handler: HandlerDep, config: SettingsDep
) -> dict[str, Any]:
    raw = await _read_json_body(request, config.max_upload_bytes)
    return await run_in_threadpool(handler.replace_chapter, chapter_id, raw)


@router.patch("/{chapter_id}", dependencies=AdminDeps)
async def patch_chapter(
    chapter_id: str, request: Request, handler: HandlerDep, config: SettingsDep
) -> dict[str, Any]:
    raw = await _read_json_body(request, config.max_upload_bytes)
    return await run_in_threadpool(handler.patch_chapter, chapter_id, raw)


@router.delete("/{chapter_id}", dependencies=AdminDeps)
def delete_chapter(chapter_id: str, handler: HandlerDep) -> dict[str, Any]:
    return handler.delete_chapter(chapter_id)


def create_app(config: Settings | None = None, lifespan=lifespan) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Settings to use. Defaults to the environment.
        lifespan: Startup/shutdown context. Tests pass one that wires
            in-memory stores instead of MongoDB and Redis.

    Returns:
        Configured FastAPI application
    """
    config = config or get_settings()
    configure_logging(config)

    app = FastAPI(
        title="Chapter Performance Dashboard API",
        description="Chapter performance records backed by MongoDB, with Redis response caching and rate limiting",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = config

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        """Count every request against the client's general budget."""
        limiter = getattr(request.app.state, "rate_limiter", None)
        if limiter is None or request.url.path in UNTHROTTLED_PATHS:
            return await call_next(request)

        try:
            budget = await run_in_threadpool(limiter.hit, client_ip(request))
        except RateLimitError as e:
            return rate_limit_response(e)

        response = await call_next(request)
        if budget is not None:
            response.headers.update(budget.headers())
        return response

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    @app.get("/")
    def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return success_payload(
            data={
                "name": "Chapter Performance Dashboard API",
                "version": API_VERSION,
                "endpoints": {
                    "chapters": API_PREFIX,
                    "statistics": f"{API_PREFIX}/stats",
                    "health": "/health",
                    "docs": "/docs",
                },
            }
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Liveness probe; never authenticated or throttled."""
        return HealthCheckResponse(
            status="success",
            message="Chapter Performance Dashboard API is running",
        ).model_dump()

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "chapter_dashboard.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
