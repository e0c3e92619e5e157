"""Error types raised by the invitation workflow."""


class PlannerError(Exception):
    """Base class for all application errors."""


class ValidationError(PlannerError):
    """Request payload is missing or malformed."""


class IssuerError(PlannerError):
    """Failure in one phase of issuing or redeeming an invitation."""

    phase = "unknown"

    def __init__(self, message: str, phase: str = None):
        super().__init__(message)
        self.message = message
        if phase:
            self.phase = phase

    def to_dict(self) -> dict:
        return {
            'error': self.message,
            'error_type': type(self).__name__,
            'phase': self.phase
        }


class NotFoundError(IssuerError):
    """Guest or event lookup missed."""
    phase = "lookup"


class PersistenceError(IssuerError):
    """Token batch could not be written to the token store."""
    phase = "persist"


class DispatchError(IssuerError):
    """Invitation email could not be sent."""
    phase = "dispatch"


class InvalidTokenError(IssuerError):
    """Token is unknown, already used, or belongs to a superseded batch."""
    phase = "redeem"
