"""
Core runtime module.

Exports:
- Game, GameConfig: Main loop and configuration
- Scene, SceneManager: Scene management
- ObjectRegistry: Type-indexed scene object container
- EventBus, Event, EngineEvent, SaveEvent: Event system
- TaskRunner, Task and the wait instructions: Cooperative tasks
"""

from runtime.core.events import EventBus, Event, EngineEvent, SaveEvent
from runtime.core.registry import ObjectRegistry
from runtime.core.scene import Scene, SceneManager
from runtime.core.tasks import (
    BackgroundWorker,
    Task,
    TaskRunner,
    TaskState,
    WaitForEndOfFrame,
    WaitFrames,
    WaitUntil,
)
from runtime.core.game import Game, GameConfig

__all__ = [
    # Game
    "Game",
    "GameConfig",
    # Scene
    "Scene",
    "SceneManager",
    "ObjectRegistry",
    # Events
    "EventBus",
    "Event",
    "EngineEvent",
    "SaveEvent",
    # Tasks
    "BackgroundWorker",
    "Task",
    "TaskRunner",
    "TaskState",
    "WaitForEndOfFrame",
    "WaitFrames",
    "WaitUntil",
]
