"""
Structured logging for the API server and the client.

Each line carries the request id of the HTTP request being served (when
there is one), the logger's domain and any keyword context. Production
emits one JSON object per line; other environments get a compact
human-readable form.
"""
import inspect
import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

from formdesk.core.config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
request_start_var: ContextVar[Optional[float]] = ContextVar('request_start', default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


class StructuredLogger:
    """Thin wrapper over a stdlib logger that renders keyword context."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)

    @property
    def json_output(self) -> bool:
        return settings.APP_ENV == 'production'

    def _record(self, level: int, message: str, context: Dict[str, Any],
                error: Optional[BaseException]) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            'ts': datetime.now(timezone.utc).isoformat(timespec='milliseconds'),
            'level': logging.getLevelName(level),
            'logger': self.name,
            'msg': message,
        }
        request_id = request_id_var.get()
        if request_id:
            record['request_id'] = request_id
        if context:
            record['ctx'] = context
        if error is not None:
            record['error'] = f"{type(error).__name__}: {error}"
        return record

    def _render(self, record: Dict[str, Any]) -> str:
        if self.json_output:
            return json.dumps(record, default=str)

        line = f"[{record.get('request_id', '-')}] {record['msg']}"
        ctx = record.get('ctx')
        if ctx:
            line += ' ' + ' '.join(f"{key}={value!r}" for key, value in ctx.items())
        if 'error' in record:
            line += f" error=({record['error']})"
        return line

    def _emit(self, level: int, message: str, context: Dict[str, Any],
              error: Optional[BaseException] = None, exc_info: bool = False) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(level, self._render(self._record(level, message, context, error)),
                        exc_info=exc_info)

    def debug(self, message: str, **context):
        self._emit(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._emit(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._emit(logging.WARNING, message, context)

    def error(self, message: str, error: Optional[BaseException] = None, **context):
        self._emit(logging.ERROR, message, context, error)

    def exception(self, message: str, **context):
        self._emit(logging.ERROR, message, context, exc_info=True)


def get_logger(name: str = 'formdesk') -> StructuredLogger:
    return StructuredLogger(name)


api_logger = get_logger('formdesk.api')
auth_logger = get_logger('formdesk.auth')
forms_logger = get_logger('formdesk.forms')
submissions_logger = get_logger('formdesk.submissions')
storage_logger = get_logger('formdesk.storage')
db_logger = get_logger('formdesk.database')
client_logger = get_logger('formdesk.client')


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def log_operation(operation: str, logger: Optional[StructuredLogger] = None):
    """Time a service call and log its outcome.

    Rejected input (anything carrying ``field_errors``) is logged as a
    warning with the offending field keys; other failures are errors.
    Exceptions always propagate.

        @log_operation("create_form", forms_logger)
        async def create_form(...):
            ...
    """
    log = logger or api_logger

    def _failed(e: Exception, start: float) -> None:
        field_errors = getattr(e, 'field_errors', None)
        if field_errors is not None:
            log.warning(f"{operation} rejected", fields=sorted(field_errors), duration_ms=_elapsed_ms(start))
        else:
            log.error(f"{operation} failed", error=e, duration_ms=_elapsed_ms(start))

    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _failed(e, start)
                    raise
                log.info(f"{operation} completed", duration_ms=_elapsed_ms(start))
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _failed(e, start)
                raise
            log.info(f"{operation} completed", duration_ms=_elapsed_ms(start))
            return result
        return sync_wrapper

    return decorator
