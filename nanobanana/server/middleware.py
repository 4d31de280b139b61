from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from nanobanana.services import BackendInvoker, ImageResizer, ProxyError
from nanobanana.utils import Config

GEMINI_PATH_MARKERS = (":generateContent", ":streamGenerateContent")

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-goog-api-key",
}


def is_gemini_path(path: str) -> bool:
    return any(marker in path for marker in GEMINI_PATH_MARKERS)


def error_response(request: Request, message: str, status_code: int) -> JSONResponse:
    """Gemini-style routes nest the error with its code, web UI routes get a bare message."""
    if is_gemini_path(request.url.path):
        content = {"error": {"message": message, "code": status_code}}
    else:
        content = {"error": message}
    return JSONResponse(status_code=status_code, content=content)


def proxy_exception_handler(request: Request, exc: ProxyError):
    logger.error(f"Error handling {request.url.path}: {exc.message}")
    return error_response(request, exc.message, exc.status_code)


def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(loc) for loc in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    logger.warning(f"Rejected malformed request to {request.url.path}: {details}")
    return error_response(request, f"Invalid request: {details}", status.HTTP_400_BAD_REQUEST)


def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(request, str(exc.detail), exc.status_code)


def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return error_response(request, str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)


async def preflight_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=PREFLIGHT_HEADERS)
    return await call_next(request)


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_invoker(request: Request) -> BackendInvoker:
    return request.app.state.invoker


def get_resizer(request: Request) -> ImageResizer:
    return request.app.state.resizer


def add_exception_handler(app: FastAPI):
    app.add_exception_handler(ProxyError, proxy_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)


def add_cors_middleware(app: FastAPI, config: Config):
    if config.cors.enabled:
        cors = config.cors
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors.allow_origins,
            allow_credentials=cors.allow_credentials,
            allow_methods=cors.allow_methods,
            allow_headers=cors.allow_headers,
        )
    # Added last so it wraps CORSMiddleware and answers every OPTIONS request itself.
    app.middleware("http")(preflight_middleware)
