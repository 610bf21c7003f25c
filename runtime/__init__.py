"""
Runtime

The minimal game host the persistence layer runs inside: a fixed timestep
loop, scenes that register their objects explicitly, a typed event bus and
cooperative tasks.

Quick Start:
    from runtime.core import Game, GameConfig, Scene

    game = Game(GameConfig(headless=True))
    game.scene_manager.register("Harbor", lambda: Scene("Harbor", build_harbor))
    game.scene_manager.load_immediately("Harbor")
    game.step()
"""

__version__ = "0.1.0"

from runtime.core import (
    Game,
    GameConfig,
    Scene,
    SceneManager,
    ObjectRegistry,
    EventBus,
    Event,
    EngineEvent,
    SaveEvent,
    TaskRunner,
    Task,
)

__all__ = [
    "Game",
    "GameConfig",
    "Scene",
    "SceneManager",
    "ObjectRegistry",
    "EventBus",
    "Event",
    "EngineEvent",
    "SaveEvent",
    "TaskRunner",
    "Task",
]
