"""
Domain Exceptions
Errors raised by services and rendered by the API exception handler
"""

from fastapi import status


class ExpenseFlowError(Exception):
    """Base class for all domain errors"""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ExpenseFlowError):
    """A required field is missing or a value is out of range"""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "validation_error"


class NotFoundError(ExpenseFlowError):
    """The record does not exist or does not belong to the caller"""
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class AlreadyActionedError(ExpenseFlowError):
    """The approval record (or its expense) is no longer actionable"""
    status_code = status.HTTP_409_CONFLICT
    error = "already_actioned"


class ConcurrentTransitionError(ExpenseFlowError):
    """Another transition on the same expense won the race"""
    status_code = status.HTTP_409_CONFLICT
    error = "concurrent_transition"


class ExternalServiceError(ExpenseFlowError):
    """The data store or a third-party API call failed"""
    status_code = status.HTTP_502_BAD_GATEWAY
    error = "external_service_error"
