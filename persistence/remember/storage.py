"""
LevelStorage - moves unit data between live scenes and the save model.

Scene units are found through each scene's registry. Units that must
survive scene changes (e.g. a global jukebox) are registered on the
LevelStorage itself and saved into MainData.persistent_data.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from runtime.core.registry import ObjectRegistry
from runtime.core.scene import Scene
from runtime.core.tasks import Coroutine
from persistence.remember.base import PersistentUnit
from persistence.save.model import MainData, SaveDataModel, SceneData
from persistence.state.variables import Variables

logger = logging.getLogger(__name__)


def restore_units(units: Iterable[PersistentUnit], payload: dict[int, str]) -> Coroutine:
    """
    Restore units in ascending load order, ties in discovery order.

    Units with no entry in the payload are left alone. A unit whose
    restore returns a coroutine is run to completion before the next.
    """
    for unit in sorted(units, key=lambda u: u.load_order):
        raw = payload.get(unit.identity_key)
        if raw is None:
            continue
        pending = unit.restore(raw)
        if pending is not None:
            yield from pending


def capture_units(units: Iterable[PersistentUnit]) -> dict[int, str]:
    captured: dict[int, str] = {}
    for unit in units:
        key = unit.identity_key
        if key in captured:
            logger.warning("Duplicate identity key %d on %r - later unit wins", key, unit)
        captured[key] = unit.capture()
    return captured


class LevelStorage:
    """
    Usage:
        level_storage.store_open_scenes(model, scene_manager.open_scenes)
        yield from level_storage.restore_scene(scene, model.find_scene_data(scene.name))
    """

    def __init__(self):
        self.persistent = ObjectRegistry()

    def register_persistent(self, unit: PersistentUnit) -> PersistentUnit:
        return self.persistent.add(unit)

    # Capture

    def store_scene(self, model: SaveDataModel, scene: Scene) -> SceneData:
        """Replace the scene's payload with its live units and local variables."""
        data = model.get_scene_data(scene.name)
        data.units = capture_units(scene.objects.get_all(PersistentUnit))
        local = scene.objects.first(Variables)
        data.local_variables_data = local.capture() if local else ""
        return data

    def store_open_scenes(self, model: SaveDataModel, scenes: Iterable[Scene]) -> None:
        """Capture every open scene. Payloads of scenes that are not open are kept as they were."""
        for scene in scenes:
            self.store_scene(model, scene)

    def store_persistent(self, main_data: MainData) -> None:
        main_data.persistent_data = capture_units(self.persistent.get_all(PersistentUnit))

    # Restore

    def restore_scene(self, scene: Scene, data: Optional[SceneData]) -> Coroutine:
        if data is None:
            logger.debug("No saved data for scene '%s'", scene.name)
            return
        local = scene.objects.first(Variables)
        if local is not None and data.local_variables_data:
            local.restore(data.local_variables_data)
        yield from restore_units(scene.objects.get_all(PersistentUnit), data.units)

    def restore_open_scenes(self, model: SaveDataModel, scenes: Iterable[Scene]) -> Coroutine:
        for scene in list(scenes):
            yield from self.restore_scene(scene, model.find_scene_data(scene.name))

    def restore_persistent(self, main_data: MainData) -> Coroutine:
        yield from restore_units(self.persistent.get_all(PersistentUnit), main_data.persistent_data)
