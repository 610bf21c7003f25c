"""
PersistentUnit - the contract every savable scene object implements.

A unit captures its target's state to a string and restores it from one.
The string is the JSON of a RememberData subclass; unknown fields are
ignored, so each unit type can add fields without breaking older saves.

Usage:
    class RememberDoor(PersistentUnit):
        data_class = DoorData

        def __init__(self, constant_id, door):
            super().__init__(constant_id)
            self.door = door

        def capture_data(self):
            return DoorData(is_open=self.door.is_open)

        def apply(self, data):
            self.door.is_open = data.is_open
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from runtime.core.tasks import Coroutine

logger = logging.getLogger(__name__)


class RememberData(BaseModel):
    """
    Base record for unit data.

    Attributes:
        object_id: Identity key of the unit that wrote it
        save_prevented: Whether the unit was suppressed when saved
    """

    model_config = ConfigDict(extra='ignore')

    object_id: int = 0
    save_prevented: bool = False


class PersistentUnit(ABC):
    """
    Base class for savable scene objects.

    Attributes:
        constant_id: Stable identity key, assigned by the scene author
        load_order: Units restore in ascending load order
        save_prevented: Set to stop this unit's data being applied on load
    """

    data_class: ClassVar[type[RememberData]] = RememberData
    load_order: int = 0

    def __init__(self, constant_id: int, save_prevented: bool = False):
        self.constant_id = constant_id
        self.save_prevented = save_prevented

    @property
    def identity_key(self) -> int:
        return self.constant_id

    @property
    def restoration_suppressed(self) -> bool:
        return self.save_prevented

    def capture(self) -> str:
        data = self.capture_data()
        data.object_id = self.constant_id
        data.save_prevented = self.save_prevented
        return data.model_dump_json()

    def restore(self, raw: str) -> Optional[Coroutine]:
        """
        Apply captured data.

        The suppressed flag is always taken from the data. If it is set,
        nothing else is applied. May return a coroutine when applying has
        to wait, e.g. for an asset load; the caller runs it to completion.
        """
        try:
            data = self.data_class.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Cannot restore %r - invalid data: %s", self, e)
            return None

        self.save_prevented = data.save_prevented
        if self.restoration_suppressed:
            logger.debug("Skipping restore of %r - restoration suppressed", self)
            return None
        return self.apply(data)

    @abstractmethod
    def capture_data(self) -> RememberData:
        ...

    @abstractmethod
    def apply(self, data: RememberData) -> Optional[Coroutine]:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.constant_id})"
