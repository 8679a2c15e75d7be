"""HTTP-facing error taxonomy.

Services raise these; ``app.py`` registers a handler that renders them as
``{"error": <code>, "message": <text>, ...details}`` with the matching status.
"""
from typing import Any, Dict, List, Optional

from pydantic import ValidationError


class ApiError(Exception):
    status_code = 500
    error = "internal_error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        super().__init__(message or self.error)
        self.message = message or self.error.replace("_", " ")
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.error, "message": self.message}
        body.update(self.details)
        return body


class ValidationFailed(ApiError):
    status_code = 400
    error = "validation_error"

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailed":
        fields: List[Dict[str, Any]] = []
        for err in exc.errors():
            fields.append({
                "field": ".".join(str(p) for p in err.get("loc", ())),
                "message": err.get("msg", "invalid value"),
            })
        return cls("Validation error", fields=fields)


class Unauthorized(ApiError):
    status_code = 401
    error = "unauthorized"


class Forbidden(ApiError):
    status_code = 403
    error = "forbidden"


class NotFound(ApiError):
    status_code = 404
    error = "not_found"


class InsufficientStock(ApiError):
    status_code = 409
    error = "insufficient_stock"


class InvalidTransition(ApiError):
    status_code = 409
    error = "invalid_transition"


class OrderNotCancellable(ApiError):
    status_code = 400
    error = "order_not_cancellable"
