"""
backend/ligalive/errors.py

Purpose:
    Typed failures raised by the live-match core. The HTTP boundary maps each
    kind to a status code; services never build HTTP responses themselves.
"""

from __future__ import annotations


class LigaLiveError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LigaLiveError):
    """Malformed or missing required input (identical teams, bad stage, no scorer)."""

    status_code = 400


class InvalidTransitionError(ValidationError):
    """The live match is not in a state that allows the requested transition."""

    status_code = 409


class NotFoundError(LigaLiveError):
    status_code = 404


class ConflictError(LigaLiveError):
    """Concurrent writers collided and the retry did not settle it."""

    status_code = 409


class ServerError(LigaLiveError):
    status_code = 500
