"""
State module - the live game systems that are saved.

Each system captures itself to a token string and restores from one.
"""

from persistence.state.inventory import Inventory, ItemStack, RuntimeInventory
from persistence.state.journal import Documents, Objectives
from persistence.state.objects import AssetLoader, Container, SceneItem, SceneObject, Sound
from persistence.state.players import Camera, Player, PlayerRoster
from persistence.state.session import ActionListManager, MenuSystem, MovementMethod, Timers
from persistence.state.variables import CustomTokens, Variable, Variables, VariableType

__all__ = [
    "Inventory",
    "ItemStack",
    "RuntimeInventory",
    "Documents",
    "Objectives",
    "SceneObject",
    "Container",
    "SceneItem",
    "AssetLoader",
    "Sound",
    "Player",
    "PlayerRoster",
    "Camera",
    "MovementMethod",
    "MenuSystem",
    "ActionListManager",
    "Timers",
    "Variable",
    "Variables",
    "VariableType",
    "CustomTokens",
]
