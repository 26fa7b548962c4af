"""
Client error taxonomy. Every failed call raises one of these; nothing is
swallowed or retried.
"""
from typing import Any, Dict, Optional

import httpx

from formdesk.forms.exceptions import FormValidationError


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class ValidationError(ApiError, FormValidationError):
    """422/400 from the server, or a payload rejected before sending."""

    def __init__(self, field_errors: Dict[str, str], message: Optional[str] = None,
                 status_code: Optional[int] = None, detail: Any = None):
        FormValidationError.__init__(self, field_errors, message)
        self.status_code = status_code
        self.detail = detail


class NetworkError(ApiError):
    """The request never produced a response."""


class AuthError(ApiError):
    """401: missing, expired or rejected credentials."""


class ForbiddenError(ApiError):
    """403: authenticated but not allowed (or pending approval)."""


class NotFoundError(ApiError):
    pass


def _detail_message(detail: Any, default: str) -> str:
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict) and isinstance(detail.get("message"), str):
        return detail["message"]
    return default


def error_from_response(response: httpx.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else response.text
    status = response.status_code
    message = _detail_message(detail, f"HTTP {status}")

    if status in (400, 422):
        field_errors = detail.get("field_errors", {}) if isinstance(detail, dict) else {}
        return ValidationError(field_errors, message, status_code=status, detail=detail)
    if status == 401:
        return AuthError(message, status, detail)
    if status == 403:
        return ForbiddenError(message, status, detail)
    if status == 404:
        return NotFoundError(message, status, detail)
    return ApiError(message, status, detail)
