"""
Scheduling domain errors.

Every error carries the HTTP status it maps to at the request boundary and a
human-readable ``detail`` that is returned to the caller verbatim.
"""
from typing import Optional


class SchedulingError(Exception):
    """Base class for recoverable scheduling failures"""
    status_code = 400

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class ValidationError(SchedulingError):
    """Missing or malformed input"""


class AvailabilityError(SchedulingError):
    """Doctor is not scheduled that day, or the time is outside their hours"""


class ConflictError(SchedulingError):
    """The requested slot is already held by an active appointment"""


class StateError(SchedulingError):
    """A lifecycle guard rejected the transition"""


class NotFoundError(SchedulingError):
    status_code = 404
