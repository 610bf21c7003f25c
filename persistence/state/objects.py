"""
Scene objects that Remember units save.

These are deliberately thin: a scene registers them alongside the units
that save them, and the restore orchestrator stops sounds and movement on
them through the scene registry.
"""

from __future__ import annotations

import logging

from persistence.state.inventory import Inventory

logger = logging.getLogger(__name__)


class SceneObject:
    """Anything with a transform that can be shown, hidden or moved."""

    def __init__(self, name: str, x: float = 0.0, y: float = 0.0, z: float = 0.0):
        self.name = name
        self.x = x
        self.y = y
        self.z = z
        self.rotation = 0.0
        self.scale = 1.0
        self.visible = True
        self.is_moving = False

    def move_to(self, x: float, y: float, z: float = 0.0) -> None:
        self.x, self.y, self.z = x, y, z

    def stop_moving(self) -> None:
        self.is_moving = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Container(SceneObject):
    """A scene object holding items, e.g. a chest."""

    def __init__(self, name: str, items: Inventory | None = None):
        super().__init__(name)
        self.inventory = items or Inventory()


class SceneItem(SceneObject):
    """
    An item placed in the scene that was taken from a container.

    It is only available while its source container still holds the item.
    """

    def __init__(self, name: str, item_id: int):
        super().__init__(name)
        self.item_id = item_id
        self.container: Container | None = None

    def link(self, container: Container | None) -> None:
        self.container = container

    @property
    def available(self) -> bool:
        return self.container is not None and self.container.inventory.has(self.item_id)


class AssetLoader:
    """
    Tracks which assets are loaded.

    Loads complete immediately unless the loader is deferred, in which case
    a request stays pending until finish() is called by whatever streams
    the asset in.
    """

    def __init__(self, deferred: bool = False):
        self.deferred = deferred
        self._loaded: set[str] = set()
        self._pending: set[str] = set()

    def request(self, name: str) -> None:
        if name in self._loaded:
            return
        if self.deferred:
            self._pending.add(name)
        else:
            self._loaded.add(name)

    def finish(self, name: str) -> None:
        self._pending.discard(name)
        self._loaded.add(name)

    def finish_all(self) -> None:
        self._loaded |= self._pending
        self._pending.clear()

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded

    def is_pending(self, name: str) -> bool:
        return name in self._pending


class Sound(SceneObject):
    """A sound emitter."""

    def __init__(self, name: str, clip: str = "", is_music: bool = False, loop: bool = False, volume: float = 1.0):
        super().__init__(name)
        self.clip = clip
        self.is_music = is_music
        self.loop = loop
        self.volume = volume
        self.is_playing = False
        self.position = 0.0

    def play(self, clip: str | None = None, loop: bool | None = None, position: float = 0.0) -> None:
        if clip is not None:
            self.clip = clip
        if loop is not None:
            self.loop = loop
        self.position = position
        self.is_playing = True

    def stop(self) -> None:
        self.is_playing = False
        self.position = 0.0

    @property
    def persists_across_load(self) -> bool:
        """Music and looping sounds keep playing through an in-place load."""
        return self.is_music or self.loop
