"""
Players and the camera.

The roster knows every player identity the game has. One of them is
active; the others may be in other scenes, or following the active player.
Each player reads and writes its own part of a PlayerData.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from persistence.save.model import PlayerData
from persistence.state.inventory import RuntimeInventory

logger = logging.getLogger(__name__)


class Player:
    """A player character."""

    def __init__(self, player_id: int, name: str = "", x: float = 0.0, y: float = 0.0, z: float = 0.0):
        self.player_id = player_id
        self.name = name or f"Player {player_id}"
        self.x = x
        self.y = y
        self.z = z
        self.rotation = 0.0
        self.scene_name = ""
        self.present = False
        self.follows_active = False
        self.is_moving = False

    def teleport(self, x: float, y: float, z: float = 0.0) -> None:
        self.x, self.y, self.z = x, y, z

    def stop_moving(self) -> None:
        self.is_moving = False

    def stop_following(self) -> None:
        self.follows_active = False

    def save_data(self, data: PlayerData) -> PlayerData:
        """Write this player's own state into data."""
        data.x = self.x
        data.y = self.y
        data.z = self.z
        data.rotation = self.rotation
        data.follows_active = self.follows_active
        return data

    def load_data(self, data: PlayerData, inventory: RuntimeInventory | None = None) -> None:
        """
        Apply this player's own state from data.

        When an inventory is given, the saved held item is re-selected; the
        inventory must already hold its restored contents.
        """
        self.teleport(data.x, data.y, data.z)
        self.rotation = data.rotation
        self.follows_active = data.follows_active
        self.is_moving = False
        if inventory is not None and data.held_item_id >= 0:
            inventory.select(data.held_item_id)

    def __repr__(self) -> str:
        return f"Player({self.player_id}, {self.name!r})"


class PlayerRoster:
    """
    Every player identity, and which one is active.

    Usage:
        roster = PlayerRoster([Player(0, "Ada"), Player(1, "Ben")])
        roster.active_player_id = 1
    """

    def __init__(self, players: list[Player] | None = None, active_player_id: int = 0):
        self._players: dict[int, Player] = {}
        for player in players or []:
            self.add(player)
        if not self._players:
            self.add(Player(active_player_id))
        self.active_player_id = active_player_id

    def add(self, player: Player) -> Player:
        self._players[player.player_id] = player
        return player

    def get(self, player_id: int) -> Optional[Player]:
        return self._players.get(player_id)

    @property
    def active(self) -> Optional[Player]:
        return self._players.get(self.active_player_id)

    @property
    def ids(self) -> list[int]:
        return list(self._players)

    def inactive(self) -> list[Player]:
        return [p for pid, p in self._players.items() if pid != self.active_player_id]

    def __iter__(self) -> Iterator[Player]:
        return iter(list(self._players.values()))

    def __len__(self) -> int:
        return len(self._players)

    def update_presence(self, player: Player, data: PlayerData, open_scenes: list[str], active_scene: str) -> None:
        """
        Place a player according to its saved data.

        The active player is always present. Other players are present if
        their scene is open, or if they follow the active player.
        """
        if player.player_id == self.active_player_id:
            player.scene_name = active_scene
            player.present = True
            return

        player.load_data(data)
        if data.follows_active:
            player.scene_name = active_scene
        else:
            player.scene_name = data.current_scene
        player.present = player.scene_name in open_scenes


class Camera:
    """The game camera. Its state is saved per player."""

    def __init__(self):
        self.x = 0.0
        self.y = 0.0
        self.zoom = 1.0
        self.target_id = -1

    def follow(self, player_id: int) -> None:
        self.target_id = player_id

    def move_to(self, x: float, y: float) -> None:
        self.x, self.y = x, y

    def save_data(self, data: PlayerData) -> PlayerData:
        data.camera_x = self.x
        data.camera_y = self.y
        data.camera_zoom = self.zoom
        data.camera_target_id = self.target_id
        return data

    def load_data(self, data: PlayerData) -> None:
        self.x = data.camera_x
        self.y = data.camera_y
        self.zoom = data.camera_zoom
        self.target_id = data.camera_target_id
