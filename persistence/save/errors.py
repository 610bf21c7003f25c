"""
Save system exceptions and failure reasons.

Nothing in this module escapes the capture pipeline or the restore
orchestrator: they catch these at their boundary, record them on the Task
and announce a SAVE_FAILED / LOAD_FAILED / IMPORT_FAILED event instead.
"""

from __future__ import annotations

from enum import Enum, auto


class SaveFailureReason(Enum):
    SLOT_LIMIT_REACHED = auto()
    STORAGE_ERROR = auto()
    ENCODE_ERROR = auto()


class LoadFailureReason(Enum):
    NO_DATA = auto()
    DECODE_FAILED = auto()
    SCENE_TRANSITION_FAILED = auto()
    IMPORT_REFUSED = auto()


class PersistenceError(Exception):
    """Base class for save system errors."""


class SaveFailed(PersistenceError):
    """A save was refused or could not be written."""

    def __init__(self, reason: SaveFailureReason, message: str = ""):
        self.reason = reason
        super().__init__(message or reason.name)


class LoadFailed(PersistenceError):
    """A load was aborted before any live state was touched."""

    def __init__(self, reason: LoadFailureReason, message: str = ""):
        self.reason = reason
        super().__init__(message or reason.name)


class DecodeError(PersistenceError):
    """Raw save data could not be parsed."""


class StorageError(PersistenceError):
    """A storage backend could not read, write or delete a slot."""
