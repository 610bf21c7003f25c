"""
Concrete Remember units for the common scene objects.
"""

from __future__ import annotations

import logging
from typing import Optional

from runtime.core.registry import ObjectRegistry
from runtime.core.tasks import Coroutine, WaitUntil
from persistence.remember.base import PersistentUnit, RememberData
from persistence.state.objects import AssetLoader, Container, SceneItem, SceneObject, Sound
from persistence.state.variables import Variables

logger = logging.getLogger(__name__)


# Transform

class TransformData(RememberData):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    rotation: float = 0.0
    scale: float = 1.0


class RememberTransform(PersistentUnit):
    """Saves an object's position, rotation and scale."""

    data_class = TransformData

    def __init__(self, constant_id: int, target: SceneObject, save_prevented: bool = False):
        super().__init__(constant_id, save_prevented)
        self.target = target

    def capture_data(self) -> TransformData:
        t = self.target
        return TransformData(x=t.x, y=t.y, z=t.z, rotation=t.rotation, scale=t.scale)

    def apply(self, data: TransformData) -> None:
        self.target.move_to(data.x, data.y, data.z)
        self.target.rotation = data.rotation
        self.target.scale = data.scale
        self.target.stop_moving()


# Visibility

class VisibilityData(RememberData):
    is_on: bool = True


class RememberVisibility(PersistentUnit):
    """Saves whether an object is shown."""

    data_class = VisibilityData

    def __init__(self, constant_id: int, target: SceneObject, save_prevented: bool = False):
        super().__init__(constant_id, save_prevented)
        self.target = target

    def capture_data(self) -> VisibilityData:
        return VisibilityData(is_on=self.target.visible)

    def apply(self, data: VisibilityData) -> None:
        self.target.visible = data.is_on


# Container

class ContainerData(RememberData):
    items_data: str = ""


class RememberContainer(PersistentUnit):
    """Saves a container's contents."""

    data_class = ContainerData

    def __init__(self, constant_id: int, target: Container, save_prevented: bool = False):
        super().__init__(constant_id, save_prevented)
        self.target = target

    def capture_data(self) -> ContainerData:
        return ContainerData(items_data=self.target.inventory.capture())

    def apply(self, data: ContainerData) -> None:
        self.target.inventory.restore(data.items_data)


# Scene item

class SceneItemData(RememberData):
    item_id: int = -1
    source_id: int = -1


class RememberSceneItem(PersistentUnit):
    """
    Saves a scene item and the container it came from.

    Restores after containers so the source container's contents are
    already in place when the item re-links to it.
    """

    data_class = SceneItemData
    load_order = 10

    def __init__(self, constant_id: int, target: SceneItem, registry: ObjectRegistry, save_prevented: bool = False):
        super().__init__(constant_id, save_prevented)
        self.target = target
        self.registry = registry

    def capture_data(self) -> SceneItemData:
        source_id = -1
        if self.target.container is not None:
            for unit in self.registry.get_all(RememberContainer):
                if unit.target is self.target.container:
                    source_id = unit.constant_id
                    break
        return SceneItemData(item_id=self.target.item_id, source_id=source_id)

    def apply(self, data: SceneItemData) -> None:
        self.target.item_id = data.item_id
        self.target.link(self._find_container(data.source_id))

    def _find_container(self, source_id: int) -> Optional[Container]:
        if source_id < 0:
            return None
        for unit in self.registry.get_all(RememberContainer):
            if unit.constant_id == source_id:
                return unit.target
        logger.warning("%r cannot find its source container %d", self, source_id)
        return None


# Sound

class SoundData(RememberData):
    clip: str = ""
    is_playing: bool = False
    is_looping: bool = False
    position: float = 0.0
    volume: float = 1.0


class RememberSound(PersistentUnit):
    """
    Saves a sound emitter.

    If the sound was playing, restoring waits for its clip to finish
    loading before playback resumes.
    """

    data_class = SoundData

    def __init__(self, constant_id: int, target: Sound, assets: AssetLoader, save_prevented: bool = False):
        super().__init__(constant_id, save_prevented)
        self.target = target
        self.assets = assets

    def capture_data(self) -> SoundData:
        s = self.target
        return SoundData(
            clip=s.clip,
            is_playing=s.is_playing,
            is_looping=s.loop,
            position=s.position,
            volume=s.volume,
        )

    def apply(self, data: SoundData) -> Optional[Coroutine]:
        self.target.volume = data.volume
        self.target.loop = data.is_looping
        if not data.is_playing or not data.clip:
            self.target.stop()
            self.target.clip = data.clip
            return None
        return self._resume(data)

    def _resume(self, data: SoundData) -> Coroutine:
        self.assets.request(data.clip)
        if not self.assets.is_loaded(data.clip):
            yield WaitUntil(lambda: self.assets.is_loaded(data.clip))
        self.target.play(data.clip, data.is_looping, data.position)


# Variables

class VariablesData(RememberData):
    variables_data: str = ""


class RememberVariables(PersistentUnit):
    """Saves a set of component variables."""

    data_class = VariablesData

    def __init__(self, constant_id: int, target: Variables, save_prevented: bool = False):
        super().__init__(constant_id, save_prevented)
        self.target = target

    def capture_data(self) -> VariablesData:
        return VariablesData(variables_data=self.target.capture())

    def apply(self, data: VariablesData) -> None:
        self.target.restore(data.variables_data)
