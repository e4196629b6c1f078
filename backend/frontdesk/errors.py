"""Domain error types.

Services raise these instead of calling `abort()` so they stay usable outside
a request. The app-level error handler renders them in the standard error
shape (see `frontdesk.create_app`).
"""
from __future__ import annotations


class FrontDeskError(Exception):
    status_code = 400
    title = 'Bad Request'

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(FrontDeskError):
    """Input rejected before any store write."""
    status_code = 422
    title = 'Unprocessable Entity'


class PaymentValidationError(ValidationError):
    pass


class UnknownStatusError(FrontDeskError):
    """A status/enum value outside the closed set."""


class NoDataError(FrontDeskError):
    title = 'No Data'


class ConflictError(FrontDeskError):
    status_code = 409
    title = 'Conflict'


class InvalidTransition(ConflictError):
    pass


__all__ = [
    'FrontDeskError', 'ValidationError', 'PaymentValidationError',
    'UnknownStatusError', 'NoDataError', 'ConflictError', 'InvalidTransition',
]
