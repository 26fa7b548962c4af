"""
Request context and error responses.

Every response carries ``X-Request-ID`` and every error body has the shape
``{"detail": ..., "request_id": ...}``. Validation failures, whether from
the form model or from FastAPI's request parsing, share the detail shape
``{"message": ..., "field_errors": {...}}``.
"""
import time
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from formdesk.core.logging import (
    api_logger,
    generate_request_id,
    get_request_id,
    request_id_var,
    request_start_var,
)
from formdesk.forms.exceptions import FormValidationError

# Probes are polled constantly; keep them out of the access log
QUIET_PATHS = ('/health', '/readyz')

# Location prefixes FastAPI puts in front of the offending parameter
_LOC_SOURCES = {'body', 'query', 'path', 'header', 'cookie', 'form'}


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', None) or get_request_id() or 'unknown'


def _elapsed_ms() -> Optional[float]:
    start = request_start_var.get()
    return round((time.perf_counter() - start) * 1000, 2) if start else None


def error_response(request: Request, status_code: int, detail: Any,
                   headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    request_id = _request_id(request)
    merged = dict(headers or {})
    merged['X-Request-ID'] = request_id
    return JSONResponse(
        status_code=status_code,
        content={'detail': detail, 'request_id': request_id},
        headers=merged,
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns the request id, logs one line per request and turns crashes into 500s."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        request.state.request_id = request_id
        id_token = request_id_var.set(request_id)
        start_token = request_start_var.set(time.perf_counter())

        path = request.url.path
        quiet = path.endswith(QUIET_PATHS)
        try:
            response = await call_next(request)
        except Exception as e:
            api_logger.error(f"{request.method} {path} crashed", error=e, duration_ms=_elapsed_ms())
            return error_response(request, 500, 'Internal server error')
        else:
            response.headers['X-Request-ID'] = request_id
            if not quiet:
                log = api_logger.info if response.status_code < 400 else api_logger.warning
                log(f"{request.method} {path} {response.status_code}", duration_ms=_elapsed_ms())
            return response
        finally:
            request_id_var.reset(id_token)
            request_start_var.reset(start_token)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    api_logger.error(f"Unhandled exception in {request.method} {request.url.path}", error=exc)
    return error_response(request, 500, 'Internal server error')


async def http_exception_handler(request: Request, exc) -> JSONResponse:
    status_code = getattr(exc, 'status_code', 500)
    detail = getattr(exc, 'detail', 'Unknown error')
    if status_code >= 500:
        api_logger.error(f"HTTP {status_code}: {detail}", path=request.url.path)
    return error_response(request, status_code, detail, getattr(exc, 'headers', None))


async def form_validation_exception_handler(request: Request, exc: FormValidationError) -> JSONResponse:
    return error_response(request, 422, exc.to_detail())


async def validation_exception_handler(request: Request, exc) -> JSONResponse:
    """RequestValidationError mapped onto the form validation body."""
    field_errors = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get('loc', ()) if part not in _LOC_SOURCES]
        field_errors.setdefault('.'.join(loc) or 'request', error.get('msg', 'Invalid value'))
    detail = FormValidationError(field_errors, 'Validation error').to_detail()
    return error_response(request, 422, detail)
