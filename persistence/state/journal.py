"""
Documents and objectives held by the active player.

Both are per-player: the save system copies them into the player's
PlayerData on save, and back out on load or player switch.
"""

from __future__ import annotations

import logging

from persistence.save import tokens

logger = logging.getLogger(__name__)


class Documents:
    """Collected document ids, plus the one last opened."""

    def __init__(self):
        self._collected: list[int] = []
        self.last_open_id: int = -1

    def add(self, document_id: int) -> None:
        if document_id not in self._collected:
            self._collected.append(document_id)

    def remove(self, document_id: int) -> None:
        if document_id in self._collected:
            self._collected.remove(document_id)
        if self.last_open_id == document_id:
            self.last_open_id = -1

    def has(self, document_id: int) -> bool:
        return document_id in self._collected

    def open(self, document_id: int) -> None:
        self.add(document_id)
        self.last_open_id = document_id

    @property
    def collected(self) -> list[int]:
        return list(self._collected)

    def capture(self) -> str:
        return tokens.join_tokens([("open", self.last_open_id)] + [(d, 1) for d in self._collected])

    def restore(self, data: str) -> None:
        self._collected = []
        self.last_open_id = -1
        for key, raw in tokens.split_tokens(data):
            try:
                if key == "open":
                    self.last_open_id = int(raw)
                else:
                    self._collected.append(int(key))
            except ValueError:
                logger.warning("Ignoring malformed document entry '%s:%s'", key, raw)


class Objectives:
    """Objective id to current state id. State 0 is the objective's start state."""

    def __init__(self):
        self._states: dict[int, int] = {}

    def set_state(self, objective_id: int, state_id: int) -> None:
        self._states[objective_id] = state_id

    def get_state(self, objective_id: int) -> int:
        return self._states.get(objective_id, -1)

    def remove(self, objective_id: int) -> None:
        self._states.pop(objective_id, None)

    @property
    def active(self) -> dict[int, int]:
        return dict(self._states)

    def capture(self) -> str:
        return tokens.join_tokens(sorted(self._states.items()))

    def restore(self, data: str) -> None:
        states = {}
        for key, raw in tokens.split_tokens(data):
            try:
                states[int(key)] = int(raw)
            except ValueError:
                logger.warning("Ignoring malformed objective entry '%s:%s'", key, raw)
        self._states = states
