import logging

import pytest
from runtime.core.scene import Scene
from persistence.remember.base import PersistentUnit, RememberData
from persistence.remember.storage import LevelStorage, capture_units, restore_units
from persistence.remember.units import RememberTransform, RememberVisibility
from persistence.save.model import MainData, SaveDataModel
from persistence.state.objects import SceneObject
from persistence.state.variables import Variables, VariableType

class RecordingUnit(PersistentUnit):
    """Appends its id to a shared log when restored."""

    def __init__(self, constant_id, log, load_order=0):
        super().__init__(constant_id)
        self.log = log
        self.load_order = load_order

    def capture_data(self):
        return RememberData()

    def apply(self, data):
        self.log.append(self.constant_id)

def test_restore_runs_in_load_order():
    log = []
    late = RecordingUnit(2, log, load_order=10)
    early = RecordingUnit(1, log, load_order=0)
    tie = RecordingUnit(3, log, load_order=0)
    payload = capture_units([late, early, tie])

    list(restore_units([late, early, tie], payload))

    assert log == [1, 3, 2]

def test_units_without_payload_are_left_alone():
    boat = SceneObject("boat", x=4.0)

    list(restore_units([RememberTransform(2, boat)], {}))

    assert boat.x == 4.0

def test_duplicate_identity_key_warns(caplog):
    first = RememberVisibility(1, SceneObject("a"))
    second = RememberVisibility(1, SceneObject("b", x=1.0))
    second.target.visible = False

    with caplog.at_level(logging.WARNING):
        captured = capture_units([first, second])

    assert "Duplicate identity key 1" in caplog.text
    assert '"is_on":false' in captured[1]

def test_store_and_restore_scene():
    scene = Scene("Pier")
    post = scene.register(SceneObject("post", x=2.0))
    scene.register(RememberTransform(1, post))
    local = scene.register(Variables())
    local.define(1, "visits", VariableType.INTEGER, 3)
    model = SaveDataModel()
    storage = LevelStorage()

    data = storage.store_scene(model, scene)
    post.move_to(0.0, 0.0)
    local.set(1, 0)
    list(storage.restore_scene(scene, model.find_scene_data("Pier")))

    assert set(data.units) == {1}
    assert data.local_variables_data == "1:3"
    assert post.x == 2.0
    assert local.get(1) == 3

def test_restore_scene_without_data():
    scene = Scene("Pier")
    post = scene.register(SceneObject("post", x=2.0))
    scene.register(RememberTransform(1, post))

    assert list(LevelStorage().restore_scene(scene, None)) == []
    assert post.x == 2.0

def test_store_keeps_payloads_of_closed_scenes():
    model = SaveDataModel()
    model.get_scene_data("Lighthouse").units[1] = "{}"
    scene = Scene("Pier")

    LevelStorage().store_open_scenes(model, [scene])

    assert model.find_scene_data("Lighthouse").units == {1: "{}"}
    assert model.find_scene_data("Pier") is not None

def test_persistent_units():
    storage = LevelStorage()
    jukebox = SceneObject("jukebox", x=7.0)
    storage.register_persistent(RememberTransform(100, jukebox))
    main = MainData()

    storage.store_persistent(main)
    jukebox.move_to(0.0, 0.0)
    list(storage.restore_persistent(main))

    assert list(main.persistent_data) == [100]
    assert jukebox.x == 7.0
