"""
Save data model.

Everything a save file holds, as pydantic models:

    SaveDataModel
    ├── main_data: MainData            global systems
    ├── player_data: list[PlayerData]  one per player id
    └── scene_data: list[SceneData]    one per scene ever captured

Subsystem state is stored as opaque strings (usually token strings, see
persistence.save.tokens) so each subsystem owns its own format. Scene units
are stored as a map of identity key to captured string.

Each in-flight save or load owns its SaveDataModel exclusively. The capture
pipeline hands a deep copy to the encoder.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

AUTOSAVE_SLOT_ID = 0


class SaveModel(BaseModel):
    """Base for persisted records. Unknown fields are ignored on load."""

    model_config = ConfigDict(
        validate_assignment=True,
        extra='ignore',
    )


class MainData(SaveModel):
    """Global, player-independent state."""
    current_player_id: int = 0
    runtime_variables_data: str = ""
    custom_token_data: str = ""
    menu_data: str = ""
    active_lists_data: str = ""
    timers_data: str = ""
    movement_method: str = ""
    open_scenes: list[str] = Field(default_factory=list)
    persistent_data: dict[int, str] = Field(default_factory=dict)
    playtime: float = 0.0


class PlayerData(SaveModel):
    """State belonging to one player identity."""
    player_id: int = 0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    rotation: float = 0.0
    current_scene: str = ""
    previous_scene: str = ""
    held_item_id: int = -1
    inventory_data: str = ""
    documents_data: str = ""
    objectives_data: str = ""
    camera_x: float = 0.0
    camera_y: float = 0.0
    camera_zoom: float = 1.0
    camera_target_id: int = -1
    follows_active: bool = False


class SceneData(SaveModel):
    """Captured units of one scene, keyed by identity key."""
    scene: str
    units: dict[int, str] = Field(default_factory=dict)
    local_variables_data: str = ""


class SaveHeader(SaveModel):
    """The main block of a save file: everything except scene data."""
    main_data: MainData = Field(default_factory=MainData)
    player_data: list[PlayerData] = Field(default_factory=list)


class SceneBlock(SaveModel):
    """The scene block of a save file."""
    scenes: list[SceneData] = Field(default_factory=list)


class SaveDataModel(SaveModel):
    """A complete save."""
    main_data: MainData = Field(default_factory=MainData)
    player_data: list[PlayerData] = Field(default_factory=list)
    scene_data: list[SceneData] = Field(default_factory=list)

    def find_player_data(self, player_id: int) -> Optional[PlayerData]:
        for data in self.player_data:
            if data.player_id == player_id:
                return data
        return None

    def get_player_data(self, player_id: int) -> PlayerData:
        """PlayerData for player_id, created the first time it is asked for."""
        data = self.find_player_data(player_id)
        if data is None:
            data = PlayerData(player_id=player_id)
            self.player_data.append(data)
        return data

    def find_scene_data(self, scene: str) -> Optional[SceneData]:
        for data in self.scene_data:
            if data.scene == scene:
                return data
        return None

    def get_scene_data(self, scene: str) -> SceneData:
        data = self.find_scene_data(scene)
        if data is None:
            data = SceneData(scene=scene)
            self.scene_data.append(data)
        return data

    @property
    def header(self) -> SaveHeader:
        return SaveHeader(main_data=self.main_data, player_data=self.player_data)

    @classmethod
    def from_parts(cls, header: SaveHeader, scenes: list[SceneData] | None = None) -> SaveDataModel:
        return cls(
            main_data=header.main_data,
            player_data=header.player_data,
            scene_data=scenes or [],
        )


@dataclass
class SaveSlotRef:
    """
    A discovered save slot.

    Identity is (slot_id, profile_id). Slot 0 is the autosave.
    """
    slot_id: int
    profile_id: int = 0
    label: str = ""
    updated_time: float = field(default_factory=time.time)
    screenshot: Optional[bytes] = None
    file_name: str = ""

    @property
    def key(self) -> tuple[int, int]:
        return (self.slot_id, self.profile_id)

    @property
    def is_autosave(self) -> bool:
        return self.slot_id == AUTOSAVE_SLOT_ID

    @property
    def timestamp(self) -> str:
        return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.updated_time))

    def with_label(self, label: str) -> SaveSlotRef:
        return replace(self, label=label)


@dataclass(frozen=True)
class SelectiveLoad:
    """
    Which parts of a save the next load restores.

    Passed by value into a load; the save system resets its pending policy
    to everything() as soon as a load consumes it.
    """
    load_scene: bool = True
    load_scene_objects: bool = True
    load_inventory: bool = True
    load_player: bool = True
    load_variables: bool = True
    load_menus: bool = True
    load_sub_scenes: bool = True

    @classmethod
    def everything(cls) -> SelectiveLoad:
        return cls()
