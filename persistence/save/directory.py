"""
Save slot directory.

Caches the slots found in storage, per profile, with their display labels.
The cache is only ever replaced wholesale by gather(); completed saves,
renames and deletes call it again rather than patching entries.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from persistence.save.model import AUTOSAVE_SLOT_ID, SaveSlotRef
from persistence.save.options import OptionsStore
from persistence.save.settings import SaveSettings, SaveTimeDisplay
from persistence.save.storage import StorageBackend

logger = logging.getLogger(__name__)

AUTOSAVE_LABEL = "Autosave"
SAVE_LABEL = "Save"


class SaveSlotDirectory:
    """
    Discovered save slots.

    Usage:
        directory = SaveSlotDirectory(backend, options, settings)
        for slot in directory.gather(profile_id=0):
            print(slot.slot_id, slot.label)
    """

    def __init__(self, backend: StorageBackend, options: OptionsStore, settings: SaveSettings | None = None):
        self.backend = backend
        self.options = options
        self.settings = settings or SaveSettings()
        self._slots: dict[int, list[SaveSlotRef]] = {}

    # Queries

    def gather(self, profile_id: int = 0) -> list[SaveSlotRef]:
        """Re-read the backend and replace the cached slots for a profile."""
        labels = self.options.labels(profile_id)
        slots = [
            slot.with_label(labels.get(slot.slot_id) or self.default_label_for(slot.slot_id, slot.updated_time))
            for slot in self.backend.enumerate(profile_id)
        ]
        if self.settings.order_saves_by_update_time:
            slots.sort(key=lambda s: s.updated_time, reverse=True)
        else:
            slots.sort(key=lambda s: s.slot_id)

        self._slots[profile_id] = slots
        return list(slots)

    def slots(self, profile_id: int = 0) -> list[SaveSlotRef]:
        """The cached slots, gathering first if the profile was never read."""
        if profile_id not in self._slots:
            return self.gather(profile_id)
        return list(self._slots[profile_id])

    def find(self, slot_id: int, profile_id: int = 0) -> Optional[SaveSlotRef]:
        for slot in self.slots(profile_id):
            if slot.slot_id == slot_id:
                return slot
        return None

    def exists(self, slot_id: int, profile_id: int = 0) -> bool:
        return self.find(slot_id, profile_id) is not None

    def count(self, profile_id: int = 0, include_autosave: bool = False) -> int:
        return sum(1 for s in self.slots(profile_id) if include_autosave or not s.is_autosave)

    def most_recent(self, profile_id: int = 0) -> Optional[SaveSlotRef]:
        slots = self.slots(profile_id)
        if not slots:
            return None
        return max(slots, key=lambda s: s.updated_time)

    def new_save_id(self, profile_id: int = 0) -> int:
        """The first gap after the lowest existing id, else one past the highest."""
        ids = sorted(s.slot_id for s in self.slots(profile_id))
        if not ids:
            return 1

        expected = -1
        for slot_id in ids:
            if expected != -1 and expected != slot_id:
                return expected
            expected = slot_id + 1
        return ids[-1] + 1

    def default_label_for(self, slot_id: int, updated_time: float | None = None) -> str:
        """'Autosave' for slot 0, 'Save N' otherwise, with an optional date suffix."""
        label = AUTOSAVE_LABEL if slot_id == AUTOSAVE_SLOT_ID else f"{SAVE_LABEL} {slot_id}"

        display = self.settings.save_time_display
        if display is SaveTimeDisplay.NONE:
            return label
        local = time.localtime(updated_time if updated_time is not None else time.time())
        if display is SaveTimeDisplay.DATE_ONLY:
            return f"{label} ({time.strftime('%Y-%m-%d', local)})"
        return f"{label} ({time.strftime('%H:%M %Y-%m-%d', local)})"

    # Mutations

    def rename(self, slot_id: int, label: str, profile_id: int = 0) -> bool:
        if not self.exists(slot_id, profile_id):
            logger.warning("Cannot rename save %d - it does not exist", slot_id)
            return False
        self.options.set_label(profile_id, slot_id, label)
        self.gather(profile_id)
        return True

    def delete(self, slot_id: int, profile_id: int = 0) -> bool:
        if not self.exists(slot_id, profile_id):
            logger.warning("Cannot delete save %d - it does not exist", slot_id)
            return False
        self.backend.delete(slot_id, profile_id)
        self.options.remove_label(profile_id, slot_id)
        self.options.forget_save(profile_id, slot_id)
        self.gather(profile_id)
        return True

    def delete_profile(self, profile_id: int) -> None:
        self.backend.delete_profile(profile_id)
        self.options.delete_profile(profile_id)
        self._slots.pop(profile_id, None)

    def record_save(self, slot_id: int, profile_id: int = 0, label: str = "") -> SaveSlotRef:
        """Called after a successful write: store the label, refresh, remember the id."""
        if label:
            self.options.set_label(profile_id, slot_id, label)
        self.gather(profile_id)
        self.options.record_save(profile_id, slot_id)
        return self.find(slot_id, profile_id)
