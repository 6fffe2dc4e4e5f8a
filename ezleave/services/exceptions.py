"""
Error taxonomy for the leave services.

Services raise these; ezleave.main translates them into JSON responses
with the status code carried by each class.
"""
from typing import Optional


class LeaveError(Exception):
    """Base class for every failure reported by the services."""

    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def error_code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.error_code}


class ValidationError(LeaveError):
    status_code = 400
    default_message = "Invalid input"


class InsufficientBalance(LeaveError):
    status_code = 400
    default_message = "Insufficient leave balance"


class OverlappingRequest(LeaveError):
    status_code = 400
    default_message = "You have overlapping leave requests"


class NotFound(LeaveError):
    status_code = 404
    default_message = "Not found"


class NotPending(LeaveError):
    status_code = 409
    default_message = "Leave request is not pending"


class AlreadyCancelled(LeaveError):
    status_code = 409
    default_message = "Leave request is already cancelled"


class PastApprovedLeave(LeaveError):
    status_code = 400
    default_message = "Cannot cancel approved leave that has already started"


class Forbidden(LeaveError):
    status_code = 403
    default_message = "Access denied"


class Conflict(LeaveError):
    status_code = 409
    default_message = "Resource already exists"
