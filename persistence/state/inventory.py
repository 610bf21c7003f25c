"""
Inventory state - item stacks, the active player's inventory and containers.

Only the save/restore contract matters to the save system: an inventory
captures to a token string of `item_id:count` pairs and restores from one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from persistence.save import tokens

logger = logging.getLogger(__name__)


@dataclass
class ItemStack:
    """
    A stack of items.

    Attributes:
        item_id: Reference to item definition
        count: Number of items in stack
    """
    item_id: int
    count: int = 1

    @property
    def is_empty(self) -> bool:
        return self.count <= 0


def parse_items(data: str) -> list[ItemStack]:
    """Item stacks from an inventory token string. Malformed pairs are skipped."""
    stacks = []
    for key, value in tokens.split_tokens(data):
        try:
            stacks.append(ItemStack(item_id=int(key), count=int(value)))
        except ValueError:
            logger.warning("Ignoring malformed inventory entry '%s:%s'", key, value)
    return stacks


def format_items(stacks: list[ItemStack]) -> str:
    return tokens.join_tokens((s.item_id, s.count) for s in stacks if not s.is_empty)


class Inventory:
    """Ordered collection of item stacks, one stack per item id."""

    def __init__(self, stacks: list[ItemStack] | None = None):
        self._stacks: list[ItemStack] = []
        for stack in stacks or []:
            self.add(stack.item_id, stack.count)

    def add(self, item_id: int, count: int = 1) -> None:
        stack = self._find(item_id)
        if stack:
            stack.count += count
        else:
            self._stacks.append(ItemStack(item_id, count))

    def remove(self, item_id: int, count: int = 1) -> int:
        """
        Remove up to count items.

        Returns:
            Amount actually removed
        """
        stack = self._find(item_id)
        if not stack:
            return 0
        taken = min(count, stack.count)
        stack.count -= taken
        if stack.is_empty:
            self._stacks.remove(stack)
        return taken

    def count(self, item_id: int) -> int:
        stack = self._find(item_id)
        return stack.count if stack else 0

    def has(self, item_id: int, count: int = 1) -> bool:
        return self.count(item_id) >= count

    def clear(self) -> None:
        self._stacks.clear()

    @property
    def items(self) -> list[ItemStack]:
        return [ItemStack(s.item_id, s.count) for s in self._stacks]

    @property
    def item_ids(self) -> list[int]:
        return [s.item_id for s in self._stacks]

    def __iter__(self) -> Iterator[ItemStack]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self._stacks)

    def capture(self) -> str:
        return format_items(self._stacks)

    def restore(self, data: str) -> None:
        self._stacks = []
        for stack in parse_items(data):
            self.add(stack.item_id, stack.count)

    def _find(self, item_id: int) -> Optional[ItemStack]:
        for stack in self._stacks:
            if stack.item_id == item_id:
                return stack
        return None


class RuntimeInventory(Inventory):
    """
    The active player's inventory.

    Also tracks the item the player currently holds. A held item must be
    in the inventory; restoring the inventory first lets the player's own
    restore re-select it.
    """

    def __init__(self, stacks: list[ItemStack] | None = None):
        super().__init__(stacks)
        self.selected_item_id: int = -1

    def select(self, item_id: int) -> bool:
        if item_id >= 0 and not self.has(item_id):
            logger.warning("Cannot select item %d - it is not in the inventory", item_id)
            return False
        self.selected_item_id = item_id
        return True

    def deselect(self) -> None:
        self.selected_item_id = -1

    def remove(self, item_id: int, count: int = 1) -> int:
        taken = super().remove(item_id, count)
        if item_id == self.selected_item_id and not self.has(item_id):
            self.deselect()
        return taken

    def restore(self, data: str) -> None:
        super().restore(data)
        self.deselect()
