"""
Failure taxonomy for remote-call attempts and store operations.

Every failed attempt inside the retry ladder is one of the four
:class:`AttemptError` subclasses; anything else escaping an attempt is a
programming error and is handled at the per-item boundary instead.
"""

from __future__ import annotations


class AttemptError(Exception):
    """Base class for a classified remote-call failure."""

    kind = "attempt_error"

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.kind}] {message}" if message else f"[{self.kind}]"


class EmptyResponse(AttemptError):
    """The service returned no completion content."""

    kind = "empty_response"


class MalformedOutput(AttemptError):
    """The completion is not parseable as a JSON object."""

    kind = "malformed_output"


class SchemaViolation(AttemptError):
    """The completion parsed but failed required-field validation."""

    kind = "schema_violation"


class TransportError(AttemptError):
    """Network, auth, rate-limit or timeout failure of the call itself."""

    kind = "transport_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (status {self.status_code})"
        return base


class StoreError(Exception):
    """Any non-success response from the relational store."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
