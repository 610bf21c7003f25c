"""
Remember module - per-object persistent units.

A scene object that should survive save/load gets a Remember unit with a
stable constant id. LevelStorage collects the units of every open scene.
"""

from persistence.remember.base import PersistentUnit, RememberData
from persistence.remember.units import (
    RememberContainer,
    RememberSceneItem,
    RememberSound,
    RememberTransform,
    RememberVariables,
    RememberVisibility,
)
from persistence.remember.storage import LevelStorage, capture_units, restore_units

__all__ = [
    "PersistentUnit",
    "RememberData",
    "RememberTransform",
    "RememberVisibility",
    "RememberContainer",
    "RememberSceneItem",
    "RememberSound",
    "RememberVariables",
    "LevelStorage",
    "capture_units",
    "restore_units",
]
