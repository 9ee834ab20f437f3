# zera_oracle/errors.py
import http
import math
from typing import Any, Dict, Optional


class OracleError(Exception):
    """Base class for every error the oracle reports to a caller."""

    status_code = http.HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": int(self.status_code)}


class ValidationError(OracleError):
    """Malformed input. Surfaced to the caller and never retried."""

    status_code = http.HTTPStatus.BAD_REQUEST
    default_message = "bad request"


class NotFoundError(OracleError):
    status_code = http.HTTPStatus.NOT_FOUND
    default_message = "not found"


class ConflictError(OracleError):
    """Strict-create collision with an existing record."""

    status_code = http.HTTPStatus.CONFLICT
    default_message = "conflict"


class Unauthenticated(OracleError):
    """Missing, malformed, expired or forged credentials.

    The message never says which check failed.
    """

    status_code = http.HTTPStatus.UNAUTHORIZED
    default_message = "unauthorized"

    def __init__(self):
        super().__init__(self.default_message)


class RateLimited(OracleError):
    status_code = http.HTTPStatus.TOO_MANY_REQUESTS
    default_message = "too many requests"

    def __init__(self, retry_after: float):
        super().__init__(self.default_message)
        self.retry_after = max(1, math.ceil(retry_after))

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["retry_after"] = self.retry_after
        return body


class TransientSourceError(OracleError):
    """A peg source could not be fetched or parsed this cycle."""

    default_message = "peg source unavailable"
