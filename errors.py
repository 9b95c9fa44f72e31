"""Failure taxonomy shared by the adapters, the store and the outer surfaces."""
from typing import Optional


class InspectionError(Exception):
    code: str = "inspection_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def __str__(self) -> str:
        return self.message


class InvalidInput(InspectionError, ValueError):
    """Empty task description, malformed image data, out-of-range scores."""

    code = "invalid_input"


class ServiceCallFailure(InspectionError):
    """The external model call failed: network, auth or malformed output."""

    code = "service_call_failure"


class NoOutputProduced(ServiceCallFailure):
    """The image model answered but returned no image."""

    code = "no_output_produced"


class NotFound(InspectionError, KeyError):
    code = "not_found"


class ActionInProgress(InspectionError):
    """An identical action on the same report is still outstanding."""

    code = "action_in_progress"
