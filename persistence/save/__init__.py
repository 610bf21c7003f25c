"""
Save module - save slots and the save/load pipeline.

Provides:
- SaveSystem facade (save, load, continue, import, auto-save)
- Save data model and its wire codec
- Storage backends (memory, file)
- Slot directory with labels and profiles
- Screenshots for save slots
"""

from persistence.save.errors import (
    DecodeError,
    LoadFailed,
    LoadFailureReason,
    PersistenceError,
    SaveFailed,
    SaveFailureReason,
    StorageError,
)
from persistence.save.settings import SaveFormat, SaveScreenshots, SaveSettings, SaveTimeDisplay
from persistence.save.model import (
    AUTOSAVE_SLOT_ID,
    MainData,
    PlayerData,
    SaveDataModel,
    SaveSlotRef,
    SceneData,
    SelectiveLoad,
)
from persistence.save.codec import SaveCodec, get_format_handler
from persistence.save.storage import FileStorageBackend, MemoryStorageBackend, StorageBackend
from persistence.save.options import OptionsStore
from persistence.save.directory import SaveSlotDirectory
from persistence.save.screenshot import NullScreenshotProvider, PygameScreenshotProvider, ScreenshotProvider
from persistence.save.capture import CapturePipeline
from persistence.save.restore import RestoreOrchestrator, RestoreState
from persistence.save.system import SaveSystem

__all__ = [
    # Facade
    "SaveSystem",
    "CapturePipeline",
    "RestoreOrchestrator",
    "RestoreState",
    # Data
    "AUTOSAVE_SLOT_ID",
    "MainData",
    "PlayerData",
    "SceneData",
    "SaveDataModel",
    "SaveSlotRef",
    "SelectiveLoad",
    "SaveCodec",
    "get_format_handler",
    # Settings
    "SaveSettings",
    "SaveFormat",
    "SaveScreenshots",
    "SaveTimeDisplay",
    # Storage
    "StorageBackend",
    "MemoryStorageBackend",
    "FileStorageBackend",
    "OptionsStore",
    "SaveSlotDirectory",
    "ScreenshotProvider",
    "NullScreenshotProvider",
    "PygameScreenshotProvider",
    # Errors
    "PersistenceError",
    "SaveFailed",
    "SaveFailureReason",
    "LoadFailed",
    "LoadFailureReason",
    "DecodeError",
    "StorageError",
]
