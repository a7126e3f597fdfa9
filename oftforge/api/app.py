from __future__ import annotations

from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from oftforge.api.http.http_api import router as http_router
from oftforge.configuration.config import settings
from oftforge.core.errors import (
    BridgeApiError,
    BridgeStatusTimeoutError,
    CommandFailedError,
    ExternalError,
    ValidationError,
)
from oftforge.core.utils.format_utils import _truncate
from oftforge.logging.logger import get_logger

log = get_logger(__name__)


def _parse_allowed_origins(env_value: str) -> List[str]:
    """Parse a comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in env_value.split(",") if origin.strip()]


def _error_response(status_code: int, error: str, details: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, "details": details})


def _external_error_details(exc: ExternalError) -> str:
    if isinstance(exc, CommandFailedError):
        return _truncate(exc.stderr or exc.stdout) or type(exc).__name__
    if isinstance(exc, BridgeApiError) and exc.body:
        return _truncate(exc.body)
    return type(exc).__name__


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors: List[Dict[str, Any]] = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
            for error in exc.errors()
        ]
        log.info("[HTTP][VALIDATION] %s %s rejected — %d error(s)", request.method, request.url.path, len(errors))
        return _error_response(400, "Invalid request", errors)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        log.info("[HTTP][VALIDATION] %s %s rejected — %s", request.method, request.url.path, exc)
        return _error_response(400, str(exc), type(exc).__name__)

    @app.exception_handler(BridgeStatusTimeoutError)
    async def bridge_timeout_handler(request: Request, exc: BridgeStatusTimeoutError) -> JSONResponse:
        log.warning("[HTTP][TIMEOUT] %s %s — %s", request.method, request.url.path, exc)
        return _error_response(504, str(exc), {"txHash": exc.transaction_hash})

    @app.exception_handler(ExternalError)
    async def external_error_handler(request: Request, exc: ExternalError) -> JSONResponse:
        log.error("[HTTP][EXTERNAL] %s %s failed — %s", request.method, request.url.path, exc)
        return _error_response(500, str(exc), _external_error_details(exc))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log.exception("[HTTP][UNEXPECTED] %s %s", request.method, request.url.path)
        return _error_response(500, "Unexpected error occurred", str(exc) or type(exc).__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured oftforge API application.
    """
    app = FastAPI(title="oftforge API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_allowed_origins(settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    app.include_router(http_router)

    log.info("[HTTP][APP] oftforge API ready")
    return app
