"""
Persistence

Save/load orchestration for a narrative game built on the runtime package:
snapshot every persistent part of the live game into a save slot, and
rebuild the live game from one.

Quick Start:
    from persistence import GameContext, SaveSystem
    from persistence.save import FileStorageBackend

    context = GameContext(game=game)
    saves = SaveSystem(context, FileStorageBackend("saves"))
    game.tasks.run_until_complete(saves.save_game(1, label="Chapter 2"))
"""

__version__ = "0.1.0"

from persistence.save import (
    SaveSystem,
    SaveSettings,
    SelectiveLoad,
    SaveSlotRef,
    SaveDataModel,
)
from persistence.context import GameContext

__all__ = [
    "GameContext",
    "SaveSystem",
    "SaveSettings",
    "SelectiveLoad",
    "SaveSlotRef",
    "SaveDataModel",
]
