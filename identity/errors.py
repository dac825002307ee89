"""
Typed errors raised by the identity core.

Core components raise these; callers at the edge (scripts, an API layer)
turn them into transport responses with ``error_response``.
"""


class IdentityError(Exception):
    """Base class for identity core errors."""

    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(IdentityError):
    """Argument outside the accepted domain (unknown source, empty alias, ...)."""

    status = 400


class PermissionDenied(IdentityError):
    """Caller lacks the capability an operation requires."""

    status = 403


class NotFound(IdentityError):
    """A referenced employer or alias does not exist."""

    status = 404

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


def error_response(exc: IdentityError) -> dict:
    """Convert an identity error to a transport-level error payload."""
    return {"error": exc.message, "status": exc.status}
