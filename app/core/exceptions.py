# app/core/exceptions.py
# Typed failures raised by the engagement & matching services
#
# Services never return HTTP errors themselves. Endpoints let these bubble up
# and app/main.py maps each class to a status code:
#   InputValidationError → 422   (rejected before any store call)
#   ForbiddenError       → 403   (wrong role / not the owner)
#   NotFoundError        → 404   (referenced row does not exist)
#   ConflictError        → 409   (row exists but is in the wrong state)
#   TransportError       → 503   (store call failed, never retried here)


class EngineError(Exception):
    """Base class for every failure the services raise on purpose."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(EngineError):
    status_code = 422


class ForbiddenError(EngineError):
    status_code = 403


class NotFoundError(EngineError):
    status_code = 404


class ConflictError(EngineError):
    status_code = 409


class TransportError(EngineError):
    """A store call failed (network, server, constraint). Caller decides on retry."""
    status_code = 503
