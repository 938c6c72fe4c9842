"""
Error taxonomy for the Bus Tracker service

Every error carries the HTTP status it is reported with.
"""


class ServiceError(Exception):
    """Base class for errors reported to API clients"""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InvalidArgument(ServiceError):
    """Malformed or missing fields"""
    status_code = 400


class InvalidBus(ServiceError):
    """Unknown or inactive bus referenced by a location operation"""
    status_code = 400


class OutOfRange(ServiceError):
    """Coordinates outside the valid latitude/longitude bounds"""
    status_code = 400


class Conflict(ServiceError):
    """Duplicate registration"""
    status_code = 409


class NotFound(ServiceError):
    """Unknown bus on a registry read or update"""
    status_code = 404


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class Internal(ServiceError):
    """Store or unexpected failure"""
    status_code = 500


class StoreError(Internal):
    """The data store could not complete an operation"""
