from __future__ import annotations


class ValidationError(ValueError):
    """Raised for malformed or missing input fields.

    Callers surface it as a bad request. The operation that raised it has not
    touched any device state."""
