"""
Persisted player preferences used by the save system.

Per profile, the options store remembers which slot was saved last, the
slots saved before it (most recent last) and the labels the player gave
to slots. Labels are kept as a token string, `id:label|id:label`, with
labels escaped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from persistence.save import tokens
from persistence.save.errors import StorageError

logger = logging.getLogger(__name__)


class OptionsData(BaseModel):
    model_config = ConfigDict(extra='ignore')

    last_save_id: int = -1
    previous_save_ids: list[int] = Field(default_factory=list)
    save_labels: str = ""


class OptionsFile(BaseModel):
    model_config = ConfigDict(extra='ignore')

    profiles: dict[int, OptionsData] = Field(default_factory=dict)


class OptionsStore:
    """
    Options for every profile, optionally backed by a JSON file.

    With no path the store lives in memory only.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._file = self._read()

    def get(self, profile_id: int = 0) -> OptionsData:
        return self._file.profiles.setdefault(profile_id, OptionsData())

    def commit(self) -> None:
        """Write every profile's options to disk."""
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self._file.model_dump_json(indent=2), encoding='utf-8')
        except OSError as e:
            raise StorageError(f"Failed to write options '{self.path}': {e}") from e

    def delete_profile(self, profile_id: int) -> None:
        self._file.profiles.pop(profile_id, None)
        self.commit()

    # Save ids

    def record_save(self, profile_id: int, slot_id: int) -> None:
        """Make slot_id the last-saved slot, pushing the old one onto the history."""
        options = self.get(profile_id)
        previous = list(options.previous_save_ids)
        if options.last_save_id >= 0:
            previous.append(options.last_save_id)
        if slot_id in previous:
            previous.remove(slot_id)
        options.last_save_id = slot_id
        options.previous_save_ids = previous
        self.commit()

    def forget_save(self, profile_id: int, slot_id: int) -> None:
        """
        Drop slot_id from the history. If it was the last-saved slot, the
        most recent remaining one takes its place, or -1 if there is none.
        """
        options = self.get(profile_id)
        previous = [sid for sid in options.previous_save_ids if sid != slot_id]
        if options.last_save_id == slot_id:
            options.last_save_id = previous.pop() if previous else -1
        options.previous_save_ids = previous
        self.commit()

    # Labels

    def labels(self, profile_id: int = 0) -> dict[int, str]:
        result = {}
        for key, value in tokens.split_tokens(self.get(profile_id).save_labels):
            try:
                result[int(key)] = tokens.unescape(value)
            except ValueError:
                logger.warning("Ignoring malformed save label entry '%s'", key)
        return result

    def set_label(self, profile_id: int, slot_id: int, label: str) -> None:
        labels = self.labels(profile_id)
        labels[slot_id] = label
        self._write_labels(profile_id, labels)

    def remove_label(self, profile_id: int, slot_id: int) -> None:
        labels = self.labels(profile_id)
        if labels.pop(slot_id, None) is not None:
            self._write_labels(profile_id, labels)

    def get_label(self, profile_id: int, slot_id: int) -> Optional[str]:
        return self.labels(profile_id).get(slot_id)

    def _write_labels(self, profile_id: int, labels: dict[int, str]) -> None:
        self.get(profile_id).save_labels = tokens.join_tokens(sorted(labels.items()))
        self.commit()

    def _read(self) -> OptionsFile:
        if self.path is None or not self.path.exists():
            return OptionsFile()
        try:
            return OptionsFile.model_validate_json(self.path.read_text(encoding='utf-8'))
        except (OSError, ValidationError) as e:
            logger.warning("Options file '%s' is unreadable, starting fresh: %s", self.path, e)
            return OptionsFile()
