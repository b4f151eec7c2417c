"""Error taxonomy shared by every service operation."""

import functools
import logging
import time
from typing import Any, Optional

from quote_engine import metrics

logger = logging.getLogger(__name__)


class QuoteEngineError(Exception):
    """Base class for errors that are returned verbatim to callers."""

    kind: str = "internal"
    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert error to the response payload."""
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(QuoteEngineError):
    """Referenced entity does not exist."""

    kind = "not_found"
    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, resource: str, code: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(f"{resource} not found", code=code, details=details)
        self.resource = resource


class ConflictError(QuoteEngineError):
    """Precondition about the current state was violated."""

    kind = "conflict"
    status_code = 409
    default_code = "CONFLICT"


class BusinessRuleError(QuoteEngineError):
    """A named validation or business-rule violation."""

    kind = "business_rule"
    status_code = 400
    default_code = "BUSINESS_RULE_VIOLATION"

    def __init__(self, message: str, code: str, details: Optional[dict] = None):
        super().__init__(message, code=code, details=details)


class DependencyError(QuoteEngineError):
    """An external collaborator (identity, wallet, notification) failed."""

    kind = "dependency"
    status_code = 502
    default_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: str, details: Optional[dict] = None):
        super().__init__(f"{service}: {message}", details=details)
        self.service = service


class InternalError(QuoteEngineError):
    """Unexpected or infrastructure failure, with internals stripped."""

    kind = "internal"
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)


def service_operation(name: str):
    """
    Decorate an async service method as a boundary operation.

    Domain errors propagate unchanged; anything else is logged with its
    traceback and replaced by InternalError. Duration and outcome are recorded
    in the operation metrics.

    Args:
        name: Operation name used for logs and metric labels
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start = time.perf_counter()
            outcome = "success"
            try:
                return await func(*args, **kwargs)
            except QuoteEngineError as exc:
                outcome = exc.kind
                raise
            except Exception as exc:
                outcome = "internal"
                logger.error("Operation %s failed: %s", name, exc, exc_info=True)
                raise InternalError() from exc
            finally:
                metrics.record_operation(name, outcome, time.perf_counter() - start)

        return wrapper

    return decorator
