"""
GameContext - the live systems the save system reads and writes.

One object instead of a web of globals: the capture pipeline and the
restore orchestrator both receive the same context.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from runtime.core.game import Game
from persistence.remember.storage import LevelStorage
from persistence.save.model import SaveDataModel
from persistence.state.inventory import RuntimeInventory
from persistence.state.journal import Documents, Objectives
from persistence.state.objects import SceneObject, Sound
from persistence.state.players import Camera, PlayerRoster
from persistence.state.session import ActionListManager, MenuSystem, MovementMethod, Timers
from persistence.state.variables import CustomTokens, Variables


@dataclass
class GameContext:
    """
    Usage:
        context = GameContext(game=Game(GameConfig(headless=True)))
        context.variables.define(1, "chapter", VariableType.STRING)
    """
    game: Game
    variables: Variables = field(default_factory=Variables)
    custom_tokens: CustomTokens = field(default_factory=CustomTokens)
    inventory: RuntimeInventory = field(default_factory=RuntimeInventory)
    documents: Documents = field(default_factory=Documents)
    objectives: Objectives = field(default_factory=Objectives)
    players: PlayerRoster = field(default_factory=PlayerRoster)
    camera: Camera = field(default_factory=Camera)
    menus: MenuSystem = field(default_factory=MenuSystem)
    action_lists: ActionListManager = field(default_factory=ActionListManager)
    timers: Timers = field(default_factory=Timers)
    movement_method: MovementMethod = MovementMethod.DIRECT
    level_storage: LevelStorage = field(default_factory=LevelStorage)
    save_data: SaveDataModel = field(default_factory=SaveDataModel)
    playtime: float = 0.0

    @property
    def event_bus(self):
        return self.game.event_bus

    @property
    def scene_manager(self):
        return self.game.scene_manager

    @property
    def tasks(self):
        return self.game.tasks

    def open_scene_names(self) -> list[str]:
        return [scene.name for scene in self.scene_manager.open_scenes]

    def stop_moving_objects(self) -> None:
        for scene in self.scene_manager.open_scenes:
            for obj in scene.objects.get_all(SceneObject):
                obj.stop_moving()
        for player in self.players:
            player.stop_moving()

    def stop_one_shot_sounds(self) -> None:
        """Stop sounds that are neither music nor looping."""
        for scene in self.scene_manager.open_scenes:
            for sound in scene.objects.get_all(Sound):
                if sound.is_playing and not sound.persists_across_load:
                    sound.stop()
