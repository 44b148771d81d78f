"""
Errors raised by season operations.
"""


class ValidationError(ValueError):
    """Caller-facing, recoverable rejection. The state is left untouched."""


class PhaseError(ValidationError):
    """Operation not allowed in the session's current phase."""
