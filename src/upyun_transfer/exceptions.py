"""Exceptions raised by the transfer engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.objects import BreakpointState


class TransferError(Exception):
    """Base exception for all transfer errors."""


class ValidationError(TransferError):
    """Raised for invalid part sizes or options, before any network call is made."""


class TransientNetworkError(TransferError):
    """Raised when a request failed in a way that may succeed on retry (connection reset, timeout)."""


class PermanentRemoteError(TransferError):
    """Raised when the remote service rejected a request. Never retried."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class DecodeError(TransferError):
    """Raised when a response body cannot be decoded."""


class ResumeStateError(TransferError):
    """Raised when a breakpoint no longer matches the local source."""


class ExhaustedRetriesError(TransferError):
    """
    Raised when the retry budget of an operation is used up.

    For multipart uploads the persisted breakpoint is attached so the caller can resume.
    """

    def __init__(self, message: str, breakpoint: BreakpointState | None = None):
        self.breakpoint = breakpoint
        super().__init__(message)


class BreakpointNotFoundError(TransferError):
    """Raised when no breakpoint is stored for an upload ID."""


class BreakpointStoreError(TransferError):
    """Raised when a breakpoint cannot be read from or written to its store."""
