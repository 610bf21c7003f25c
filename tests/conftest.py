import itertools
import os
import sys
import time

import pytest
from unittest.mock import patch

# Ensure runtime and persistence can be imported
sys.path.append(os.getcwd())


@pytest.fixture(autouse=True)
def mock_pygame():
    """
    Global mock for pygame to allow headless testing.
    Autoused for all tests to prevent accidental window creation.
    """
    with patch('pygame.init'), \
         patch('pygame.display'), \
         patch('pygame.event'), \
         patch('pygame.mixer'), \
         patch('pygame.image'), \
         patch('pygame.transform'):
        yield


# Scenes

def build_harbor(scene):
    """Harbor: a chest holding item 7, the key taken from it, a boat and a lantern."""
    from persistence.remember.units import (
        RememberContainer,
        RememberSceneItem,
        RememberTransform,
        RememberVisibility,
    )
    from persistence.state.inventory import Inventory, ItemStack
    from persistence.state.objects import Container, SceneItem, SceneObject, Sound
    from persistence.state.variables import Variables, VariableType

    chest = scene.register(Container("chest", Inventory([ItemStack(7, 1)])), "chest")
    key = scene.register(SceneItem("key", item_id=7), "key")
    key.link(chest)
    boat = scene.register(SceneObject("boat", x=10.0), "boat")
    lantern = scene.register(SceneObject("lantern"), "lantern")
    scene.register(Sound("gulls", clip="gulls.ogg"), "gulls")

    local = Variables()
    local.define(1, "tide", VariableType.INTEGER, 0)
    scene.register(local, "local_variables")

    scene.register(RememberContainer(1, chest))
    scene.register(RememberTransform(2, boat))
    scene.register(RememberVisibility(3, lantern))
    scene.register(RememberSceneItem(4, key, scene.objects))


def build_market(scene):
    from persistence.remember.units import RememberTransform
    from persistence.state.objects import SceneObject

    cart = scene.register(SceneObject("cart", x=3.0), "cart")
    scene.register(RememberTransform(1, cart))


def build_cellar(scene):
    from persistence.remember.units import RememberVisibility
    from persistence.state.objects import SceneObject

    barrel = scene.register(SceneObject("barrel"), "barrel")
    scene.register(RememberVisibility(1, barrel))


# Fixtures

@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from runtime.core.events import EventBus
    return EventBus()


@pytest.fixture
def game():
    """Headless game with the Harbor, Market and Cellar scenes registered."""
    from runtime.core.game import Game, GameConfig
    from runtime.core.scene import Scene

    game = Game(GameConfig(headless=True))
    game.scene_manager.register("Harbor", lambda: Scene("Harbor", build_harbor))
    game.scene_manager.register("Market", lambda: Scene("Market", build_market))
    game.scene_manager.register("Cellar", lambda: Scene("Cellar", build_cellar))
    yield game
    game.worker.shutdown()


@pytest.fixture
def context(game):
    """Game context in the Harbor with two players and three global variables."""
    from persistence.context import GameContext
    from persistence.state.players import Player, PlayerRoster
    from persistence.state.variables import VariableType

    context = GameContext(
        game=game,
        players=PlayerRoster([Player(0, "Ada"), Player(1, "Ben")], active_player_id=0),
    )
    context.variables.define(1, "chapter", VariableType.STRING, "Chapter 1")
    context.variables.define(2, "met_captain", VariableType.BOOLEAN, False)
    context.variables.define(3, "gold", VariableType.INTEGER, 0)
    game.scene_manager.load_immediately("Harbor")
    return context


@pytest.fixture
def backend():
    """In-memory backend whose clock advances one second per write."""
    from persistence.save.storage import MemoryStorageBackend

    ticks = itertools.count(1_700_000_000)
    return MemoryStorageBackend(clock=lambda: float(next(ticks)))


@pytest.fixture
def settings():
    from persistence.save.settings import SaveSettings
    return SaveSettings()


@pytest.fixture
def save_system(context, backend, settings):
    from persistence.save.system import SaveSystem
    return SaveSystem(context, backend, settings)


@pytest.fixture
def run(game):
    """Step the game until a task finishes, and return its result."""
    def _run(task, timeout=5.0):
        deadline = time.monotonic() + timeout
        while not task.done:
            if time.monotonic() > deadline:
                raise TimeoutError(f"{task!r} did not complete")
            game.step()
        return task.result
    return _run


class EventRecorder:
    """Records every SaveEvent published on a bus."""

    def __init__(self, bus):
        from runtime.core.events import SaveEvent

        self.events = []
        for event_type in SaveEvent:
            bus.subscribe(event_type, self._record)

    def _record(self, event):
        self.events.append(event)

    def of(self, event_type):
        return [e for e in self.events if e.type is event_type]

    @property
    def types(self):
        return [e.type for e in self.events]


@pytest.fixture
def recorder(game):
    return EventRecorder(game.event_bus)
