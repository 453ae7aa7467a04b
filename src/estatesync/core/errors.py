"""Domain exceptions raised by the core and its adapters."""

from __future__ import annotations


class EstateSyncError(Exception):
    """Base class for all estatesync errors."""


class ChatExportError(EstateSyncError):
    """An uploaded chat export could not be parsed."""


class OracleError(EstateSyncError):
    """The extraction/matching service failed or returned unusable output."""


class InvalidTransitionError(EstateSyncError):
    """A task state change that the task state machine does not allow."""


class UnknownFileError(EstateSyncError):
    """A task references a chat file that is not in the store."""
