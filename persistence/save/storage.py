"""
Storage backends for save slots.

A backend stores opaque save bytes (and an optional PNG screenshot) keyed
strictly by (slot_id, profile_id). It knows nothing about the payload
format; labels are kept by the options store, not here.

Backends raise StorageError when a write or delete fails. Reads of missing
or unreadable slots return None.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from persistence.save.errors import StorageError
from persistence.save.model import SaveSlotRef
from persistence.save.settings import SaveSettings

logger = logging.getLogger(__name__)

LoadCallback = Callable[[SaveSlotRef, Optional[bytes]], None]


class StorageBackend(ABC):
    """Enumerates, reads, writes and deletes save slots."""

    @abstractmethod
    def enumerate(self, profile_id: int = 0) -> list[SaveSlotRef]:
        """Every slot stored for a profile, in no particular order."""

    @abstractmethod
    def read(self, slot_id: int, profile_id: int = 0) -> Optional[bytes]:
        ...

    @abstractmethod
    def write(self, slot_id: int, profile_id: int, data: bytes, screenshot: bytes | None = None) -> SaveSlotRef:
        """Store a slot, replacing any previous one. Returns its metadata."""

    @abstractmethod
    def delete(self, slot_id: int, profile_id: int = 0) -> None:
        ...

    def configure(self, settings: SaveSettings) -> None:
        """Adopt the save system's settings. Backends that ignore naming need nothing."""

    def exists(self, slot_id: int, profile_id: int = 0) -> bool:
        return any(ref.slot_id == slot_id for ref in self.enumerate(profile_id))

    def delete_profile(self, profile_id: int) -> None:
        for ref in self.enumerate(profile_id):
            self.delete(ref.slot_id, profile_id)

    def load(self, slot_ref: SaveSlotRef, callback: LoadCallback) -> None:
        """
        Read a slot and hand the bytes to callback.

        The default completes immediately. Backends with slow media may
        complete later, from the game loop thread.
        """
        callback(slot_ref, self.read(slot_ref.slot_id, slot_ref.profile_id))


class MemoryStorageBackend(StorageBackend):
    """Keeps slots in a dict. Used by tools, tests and platforms without a disk."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._slots: dict[tuple[int, int], tuple[bytes, Optional[bytes], float]] = {}
        self._clock = clock

    def enumerate(self, profile_id: int = 0) -> list[SaveSlotRef]:
        return [
            SaveSlotRef(slot_id=slot_id, profile_id=profile, updated_time=updated, screenshot=screenshot)
            for (slot_id, profile), (_, screenshot, updated) in self._slots.items()
            if profile == profile_id
        ]

    def read(self, slot_id: int, profile_id: int = 0) -> Optional[bytes]:
        entry = self._slots.get((slot_id, profile_id))
        return entry[0] if entry else None

    def write(self, slot_id: int, profile_id: int, data: bytes, screenshot: bytes | None = None) -> SaveSlotRef:
        updated = self._clock()
        self._slots[(slot_id, profile_id)] = (bytes(data), screenshot, updated)
        return SaveSlotRef(slot_id=slot_id, profile_id=profile_id, updated_time=updated, screenshot=screenshot)

    def delete(self, slot_id: int, profile_id: int = 0) -> None:
        self._slots.pop((slot_id, profile_id), None)


class FileStorageBackend(StorageBackend):
    """
    One file per slot in a directory.

    File names come from SaveSettings: `<prefix>_<slot>.save`, or
    `<prefix>_<slot>_<profile>.save` when profiles are in use. Writes are
    atomic and keep a `.bak` copy of the previous save; screenshots sit
    beside the save as `.png`.

    Usage:
        backend = FileStorageBackend(Path("data/saves"), SaveSettings(use_profiles=True))
        backend.write(3, 1, payload)
    """

    EXTENSION = ".save"
    SCREENSHOT_EXTENSION = ".png"

    def __init__(self, directory: str | Path, settings: SaveSettings | None = None):
        self.directory = Path(directory)
        self.configure(settings or SaveSettings())

    def configure(self, settings: SaveSettings) -> None:
        self.settings = settings
        self._pattern = re.compile(
            rf"^{re.escape(settings.save_file_prefix)}_(\d+)(?:_(\d+))?{re.escape(self.EXTENSION)}$"
        )

    def path_for(self, slot_id: int, profile_id: int = 0) -> Path:
        suffix = self.settings.file_suffix(slot_id, profile_id)
        return self.directory / f"{self.settings.save_file_prefix}{suffix}{self.EXTENSION}"

    def screenshot_path_for(self, slot_id: int, profile_id: int = 0) -> Path:
        return self.path_for(slot_id, profile_id).with_suffix(self.SCREENSHOT_EXTENSION)

    def enumerate(self, profile_id: int = 0) -> list[SaveSlotRef]:
        if not self.directory.exists():
            return []

        use_profiles = self.settings.use_profiles
        refs = []
        for path in self.directory.iterdir():
            match = self._pattern.match(path.name)
            if not match:
                continue
            if use_profiles != (match.group(2) is not None):
                continue
            slot_id = int(match.group(1))
            file_profile = int(match.group(2)) if use_profiles else 0
            if file_profile != profile_id:
                continue

            screenshot = None
            screenshot_path = path.with_suffix(self.SCREENSHOT_EXTENSION)
            if screenshot_path.exists():
                screenshot = screenshot_path.read_bytes()

            refs.append(SaveSlotRef(
                slot_id=slot_id,
                profile_id=file_profile,
                updated_time=path.stat().st_mtime,
                screenshot=screenshot,
                file_name=path.name,
            ))
        return refs

    def read(self, slot_id: int, profile_id: int = 0) -> Optional[bytes]:
        target = self.path_for(slot_id, profile_id)
        bak = target.with_suffix(target.suffix + ".bak")
        for path in (target, bak):
            if not path.exists():
                continue
            try:
                return path.read_bytes()
            except OSError as e:
                logger.warning("Failed to read save '%s': %s", path, e)
        return None

    def write(self, slot_id: int, profile_id: int, data: bytes, screenshot: bytes | None = None) -> SaveSlotRef:
        target = self.path_for(slot_id, profile_id)
        self._write_atomic(target, data, keep_backup=True)
        if screenshot is not None:
            self._write_atomic(self.screenshot_path_for(slot_id, profile_id), screenshot)

        return SaveSlotRef(
            slot_id=slot_id,
            profile_id=profile_id,
            updated_time=target.stat().st_mtime,
            screenshot=screenshot,
            file_name=target.name,
        )

    def delete(self, slot_id: int, profile_id: int = 0) -> None:
        target = self.path_for(slot_id, profile_id)
        bak = target.with_suffix(target.suffix + ".bak")
        for path in (target, bak, self.screenshot_path_for(slot_id, profile_id)):
            try:
                if path.exists():
                    path.unlink()
            except OSError as e:
                raise StorageError(f"Failed to delete {path}: {e}") from e

    def _write_atomic(self, target: Path, data: bytes, keep_backup: bool = False) -> None:
        """
        Write bytes to target atomically with fsync and replace.

        The data goes to a temp file in the same directory first, so a crash
        mid-write never leaves a truncated save behind.
        """
        fd = None
        tmp_path = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=target.name, dir=str(target.parent))
            with os.fdopen(fd, "wb") as f:
                fd = None
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if keep_backup and target.exists():
                shutil.copy2(target, target.with_suffix(target.suffix + ".bak"))
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            raise StorageError(f"Atomic write of '{target}' failed: {e}") from e
        finally:
            if fd is not None:
                os.close(fd)
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
