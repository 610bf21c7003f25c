"""
Scene management system.

A Scene is a named, loadable unit of the game world. When it is built it
registers its objects in an ObjectRegistry, which is how other systems
(the save system in particular) find what lives in the scene.

The SceneManager owns one main scene plus any number of additively-loaded
sub-scenes. Changing the main scene is asynchronous: change_scene() only
records the request, and the new scene is built a configurable number of
ticks later. Callers that need the new scene wait on is_loading.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from runtime.core.events import EventBus, EngineEvent
from runtime.core.registry import ObjectRegistry

logger = logging.getLogger(__name__)


class Scene:
    """
    Base class for game scenes.

    Lifecycle:
        1. __init__: Called when the scene is created
        2. build: Register the scene's objects
        3. on_enter: Called when scene becomes open
        4. update: Called each tick while open
        5. on_exit / on_destroy: Called when the scene is closed
    """

    def __init__(self, name: str, builder: Callable[[Scene], None] | None = None):
        self.name = name
        self.objects = ObjectRegistry()
        self._builder = builder
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    def build(self) -> None:
        """Populate the registry. Override, or pass a builder callable."""
        if self._builder:
            self._builder(self)

    def register(self, obj: Any, name: str = "") -> Any:
        return self.objects.add(obj, name)

    def on_enter(self) -> None:
        self._is_open = True

    def on_exit(self) -> None:
        self._is_open = False

    def on_destroy(self) -> None:
        self.objects.clear()

    def update(self, dt: float) -> None:
        pass

    def __repr__(self) -> str:
        return f"Scene({self.name!r})"


SceneFactory = Callable[[], Scene]


class SceneManager:
    """
    Manages the main scene and its sub-scenes.

    Scene factories are registered by name. Changing scene takes
    load_ticks updates to complete, mirroring an asynchronous load.
    """

    def __init__(self, event_bus: EventBus | None = None, load_ticks: int = 1):
        self.event_bus = event_bus or EventBus()
        self.load_ticks = max(1, load_ticks)

        self._factories: dict[str, SceneFactory] = {}
        self._current: Scene | None = None
        self._sub_scenes: list[Scene] = []
        self._pending: str | None = None
        self._ticks_remaining = 0
        self.previous_scene_name: str = ""

    # Registration

    def register(self, name: str, factory: SceneFactory | None = None) -> None:
        """
        Register a scene by name.

        Args:
            name: Scene name, as referenced by save data
            factory: Callable returning a new Scene. Defaults to an empty Scene.
        """
        self._factories[name] = factory or (lambda: Scene(name))

    def has_scene(self, name: str) -> bool:
        return name in self._factories

    # Queries

    @property
    def current(self) -> Scene | None:
        return self._current

    @property
    def current_name(self) -> str:
        return self._current.name if self._current else ""

    @property
    def sub_scenes(self) -> list[Scene]:
        return list(self._sub_scenes)

    @property
    def open_scenes(self) -> list[Scene]:
        """The main scene followed by sub-scenes, in load order."""
        scenes = [self._current] if self._current else []
        return scenes + self._sub_scenes

    @property
    def is_loading(self) -> bool:
        return self._pending is not None

    # Operations

    def change_scene(self, name: str, force_reload: bool = False) -> bool:
        """
        Request a change of main scene.

        Returns:
            False if the request could not be issued (unknown scene or a
            change already in progress)
        """
        if name not in self._factories:
            logger.warning("Cannot change scene - no scene named '%s' is registered", name)
            return False
        if self.is_loading:
            logger.warning("Cannot change scene to '%s' while '%s' is loading", name, self._pending)
            return False
        if name == self.current_name and not force_reload:
            return True

        self._pending = name
        self._ticks_remaining = self.load_ticks
        self.event_bus.publish(EngineEvent.SCENE_CHANGE_REQUESTED, scene_name=name)
        return True

    def load_immediately(self, name: str) -> Scene:
        """Open a scene synchronously (start-up, tools, tests)."""
        if name not in self._factories:
            raise KeyError(f"No scene named '{name}' is registered")
        self._pending = name
        self._complete_change()
        return self._current

    def add_sub_scene(self, name: str) -> Scene | None:
        """Open a sub-scene additively. Already-open sub-scenes are returned as-is."""
        for scene in self._sub_scenes:
            if scene.name == name:
                return scene
        if name not in self._factories:
            logger.warning("Cannot add sub-scene - no scene named '%s' is registered", name)
            return None

        scene = self._factories[name]()
        scene.build()
        scene.on_enter()
        self._sub_scenes.append(scene)
        self.event_bus.publish(EngineEvent.SUB_SCENE_ADDED, scene=scene)
        return scene

    def remove_sub_scene(self, name: str) -> None:
        for scene in list(self._sub_scenes):
            if scene.name == name:
                self._sub_scenes.remove(scene)
                scene.on_exit()
                scene.on_destroy()
                self.event_bus.publish(EngineEvent.SUB_SCENE_REMOVED, scene_name=name)

    def update(self, dt: float) -> None:
        if self._pending is not None:
            self._ticks_remaining -= 1
            if self._ticks_remaining <= 0:
                self._complete_change()

        for scene in self.open_scenes:
            scene.update(dt)

    def clear(self) -> None:
        for scene in reversed(self.open_scenes):
            scene.on_exit()
            scene.on_destroy()
        self._current = None
        self._sub_scenes.clear()
        self._pending = None

    def _complete_change(self) -> None:
        name = self._pending
        if self._current:
            self.previous_scene_name = self._current.name
        self.clear()

        scene = self._factories[name]()
        scene.build()
        scene.on_enter()
        self._current = scene
        self.event_bus.publish(EngineEvent.SCENE_READY, scene=scene)
