from __future__ import annotations

from typing import Any


class CustomerError(Exception):
    """
    Base for business-rule rejections raised by the customer core.

    `status` is a hint for the HTTP layer; the core itself never builds responses.
    """

    status = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None, *, details: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.details = list(details) if details else None
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailed(CustomerError):
    status = 400
    default_message = "Validation failed"


class InvalidInput(CustomerError):
    status = 400
    default_message = "Invalid input"


class InvalidState(CustomerError):
    status = 400
    default_message = "Invalid state"


class NotFound(CustomerError):
    status = 404
    default_message = "Not found"


class Conflict(CustomerError):
    status = 409
    default_message = "Conflict"


class NotInitialized(RuntimeError):
    """Raised when the storage gateway is used before initialize()."""
