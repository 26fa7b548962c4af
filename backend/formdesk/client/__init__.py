"""
Async HTTP client for the Formdesk API: session, error taxonomy and
paginated browsers.
"""
from formdesk.client.api import FormdeskClient
from formdesk.client.browser import FormsBrowser, SubmissionBrowser, SubmissionQuery, paginate
from formdesk.client.errors import (
    ApiError,
    AuthError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from formdesk.client.session import SessionContext

__all__ = [
    "FormdeskClient",
    "FormsBrowser",
    "SubmissionBrowser",
    "SubmissionQuery",
    "paginate",
    "ApiError",
    "AuthError",
    "ForbiddenError",
    "NetworkError",
    "NotFoundError",
    "ValidationError",
    "SessionContext",
]
