import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

import logging_config  # noqa: F401  (configures JSON logging)
from config import config, normalize_cors_origins
from init_db import init_db
from routers import files, health
from utils.prometheus import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

logger = logging.getLogger("drive_clone.main")

API_PREFIX = "/api"

# Status code -> "code" field of the API error body
ERROR_CODES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    422: "validation_error",
    500: "internal_server_error",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Drive Clone starting", extra={"storage_root": config.STORAGE_ROOT, "backend": config.STORE_BACKEND})
    # Blocking filesystem and database setup
    await asyncio.to_thread(init_db)
    yield
    logger.info("Drive Clone shutting down")


app = FastAPI(title="Drive Clone API", lifespan=lifespan)

origins = normalize_cors_origins(config.CORS_ORIGINS)
logger.info(f"CORS allowed origins: {origins}")

cors_params = {
    "allow_origins": origins,
    "allow_credentials": True,
    "allow_methods": ["*"],
    "allow_headers": ["*"],
}
if config.CORS_ORIGIN_REGEX:
    cors_params["allow_origin_regex"] = config.CORS_ORIGIN_REGEX
    logger.info(f"CORS origin regex enabled: {config.CORS_ORIGIN_REGEX}")

app.add_middleware(CORSMiddleware, **cors_params)


def _is_api(request: Request) -> bool:
    return request.url.path.startswith(API_PREFIX)


def api_error_body(status_code: int, message: str, details=None) -> dict:
    """{"error", "code", "message"} body shared by every failed /api call."""
    body = {
        "error": message,
        "code": ERROR_CODES.get(status_code, "http_error"),
        "message": message,
    }
    if details is not None:
        body["details"] = details
    return body


@app.middleware("http")
async def api_errors_as_json(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        if not _is_api(request):
            raise
        logger.error("Unhandled exception for API request", exc_info=True, extra={"path": request.url.path})
        return JSONResponse(status_code=500, content=api_error_body(500, "An unexpected error occurred"))


@app.exception_handler(HTTPException)
async def api_http_exception_handler(request: Request, exc: HTTPException):
    if not _is_api(request):
        return await http_exception_handler(request, exc)

    if isinstance(exc.detail, str):
        body = api_error_body(exc.status_code, exc.detail)
    else:
        body = api_error_body(exc.status_code, "Request error", details=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def api_validation_exception_handler(request: Request, exc: RequestValidationError):
    if not _is_api(request):
        return await request_validation_exception_handler(request, exc)

    return JSONResponse(
        status_code=422,
        content=api_error_body(422, "Validation error", details=jsonable_encoder(exc.errors())),
    )


app.include_router(files.router, prefix=API_PREFIX)
app.include_router(health.router)


@app.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics for file operations and store writes."""
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
def read_root():
    return {"message": "Drive Clone Backend"}
