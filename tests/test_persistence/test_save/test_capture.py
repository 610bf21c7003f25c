import threading

import pytest
from runtime.core.events import SaveEvent
from persistence.remember.units import TransformData
from persistence.save.capture import CapturePipeline
from persistence.save.codec import SaveCodec
from persistence.save.directory import SaveSlotDirectory
from persistence.save.errors import SaveFailed, SaveFailureReason, StorageError
from persistence.save.options import OptionsStore
from persistence.save.screenshot import ScreenshotProvider
from persistence.save.settings import SaveScreenshots, SaveSettings
from persistence.save.storage import MemoryStorageBackend
from persistence.save.system import SaveSystem

class FakeScreenshots(ScreenshotProvider):
    def __init__(self):
        self.factors = []

    def capture(self, resolution_factor=1.0):
        self.factors.append(resolution_factor)
        return b"png"

class FailingBackend(MemoryStorageBackend):
    def write(self, slot_id, profile_id, data, screenshot=None):
        raise StorageError("disk full")

class ThreadRecordingBackend(MemoryStorageBackend):
    def __init__(self):
        super().__init__()
        self.threads = []

    def write(self, slot_id, profile_id, data, screenshot=None):
        self.threads.append(threading.current_thread())
        return super().write(slot_id, profile_id, data, screenshot)

def decode(backend, slot_id):
    return SaveCodec().decode(backend.read(slot_id, 0))

def test_save_writes_slot_and_emits_events(save_system, context, backend, recorder, run):
    context.variables.set("gold", 5)

    slot = run(save_system.save_game(1, label="Start"))

    assert slot.slot_id == 1
    assert slot.label == "Start"
    assert recorder.types == [SaveEvent.BEFORE_SAVE, SaveEvent.AFTER_SAVE]
    assert recorder.of(SaveEvent.AFTER_SAVE)[0]["slot"] is slot
    assert "3:5" in decode(backend, 1).main_data.runtime_variables_data
    assert save_system.last_save_id == 1

def test_captures_global_state(save_system, context, backend, run):
    context.custom_tokens.set(4, "Captain Reyes")
    context.menus.show("Journal")
    context.timers.start("tide", 30.0)
    context.action_lists.run("harbor_ambience", resume_index=3)
    context.playtime = 90.0

    run(save_system.save_game(1))

    main = decode(backend, 1).main_data
    assert main.custom_token_data == "4:Captain Reyes"
    assert main.menu_data == "Journal:1,0"
    assert main.timers_data == "tide:30.0,30.0,1"
    assert main.active_lists_data == "harbor_ambience:3,0"
    assert main.movement_method == "direct"
    assert main.open_scenes == ["Harbor"]
    assert main.playtime == 90.0

def test_captures_open_scene_units(save_system, game, backend, run):
    game.scene_manager.current.objects.get("boat").move_to(50.0, 0.0)

    run(save_system.save_game(1))

    harbor = decode(backend, 1).find_scene_data("Harbor")
    assert TransformData.model_validate_json(harbor.units[2]).x == 50.0

def test_closed_scene_keeps_its_last_payload(save_system, game, backend, run):
    game.scene_manager.current.objects.get("boat").move_to(50.0, 0.0)
    game.scene_manager.change_scene("Market")
    game.step()

    run(save_system.save_game(1))

    model = decode(backend, 1)
    assert model.main_data.open_scenes == ["Market"]
    assert TransformData.model_validate_json(model.find_scene_data("Harbor").units[2]).x == 50.0
    assert model.find_scene_data("Market") is not None

def test_active_player_previous_scene(save_system, game, backend, run):
    run(save_system.save_game(1))
    game.scene_manager.change_scene("Market")
    game.step()

    run(save_system.save_game(1))

    data = decode(backend, 1).find_player_data(0)
    assert data.current_scene == "Market"
    assert data.previous_scene == "Harbor"

def test_inactive_players_saved_only_with_player_switching(save_system, context, settings, backend, run):
    ben = context.players.get(1)
    ben.present = True
    ben.scene_name = "Harbor"
    ben.teleport(4.0, 2.0)

    run(save_system.save_game(1))
    assert decode(backend, 1).find_player_data(1) is None

    settings.player_switching = True
    run(save_system.save_game(1))

    data = decode(backend, 1).find_player_data(1)
    assert (data.x, data.y) == (4.0, 2.0)
    assert data.current_scene == "Harbor"

def test_slot_limit_refuses_new_slot_only(save_system, settings, backend, recorder, run):
    settings.max_saves = 2
    run(save_system.save_game(1))
    run(save_system.save_game(2))
    recorder.events.clear()

    task = save_system.save_game(3)

    assert task.done
    assert isinstance(task.exception, SaveFailed)
    assert task.exception.reason is SaveFailureReason.SLOT_LIMIT_REACHED
    assert recorder.types == [SaveEvent.BEFORE_SAVE, SaveEvent.SAVE_FAILED]
    assert recorder.events[1]["slot_id"] == 3
    assert [s.slot_id for s in save_system.save_files] == [1, 2]
    assert backend.read(3, 0) is None

    assert run(save_system.save_game(2)).slot_id == 2
    assert run(save_system.save_auto_save()).slot_id == 0

def test_queued_new_slot_rechecks_limit(context, backend, recorder, run):
    settings = SaveSettings(max_saves=1, save_screenshots=SaveScreenshots.ALWAYS)
    saves = SaveSystem(context, backend, settings, screenshots=FakeScreenshots())

    first = saves.save_game(1)
    second = saves.save_game(2)
    assert not first.done
    assert not second.done

    run(second)

    assert run(first).slot_id == 1
    assert isinstance(second.exception, SaveFailed)
    assert second.exception.reason is SaveFailureReason.SLOT_LIMIT_REACHED
    assert recorder.of(SaveEvent.SAVE_FAILED)[0]["slot_id"] == 2
    assert [s.slot_id for s in saves.gather_save_files()] == [1]
    assert backend.read(2, 0) is None

def test_queued_save_to_existing_slot_passes_limit(context, backend, run):
    settings = SaveSettings(max_saves=1, save_screenshots=SaveScreenshots.ALWAYS)
    saves = SaveSystem(context, backend, settings, screenshots=FakeScreenshots())

    first = saves.save_game(1)
    again = saves.save_game(1)

    assert run(again).slot_id == 1
    assert run(first).slot_id == 1

def test_storage_failure(context, recorder, run):
    saves = SaveSystem(context, FailingBackend())

    task = saves.save_game(1)
    run(task)

    assert isinstance(task.exception, SaveFailed)
    assert task.exception.reason is SaveFailureReason.STORAGE_ERROR
    assert recorder.types == [SaveEvent.BEFORE_SAVE, SaveEvent.SAVE_FAILED]
    assert not saves.is_saving
    assert saves.gather_save_files() == []

def test_screenshot_taken_at_end_of_frame(context, backend, run):
    screenshots = FakeScreenshots()
    settings = SaveSettings(
        save_screenshots=SaveScreenshots.EXCEPT_WHEN_AUTOSAVING,
        screenshot_resolution_factor=0.5,
    )
    saves = SaveSystem(context, backend, settings, screenshots=screenshots)

    task = saves.save_game(1)
    assert not task.done

    slot = run(task)
    run(saves.save_auto_save())

    assert screenshots.factors == [0.5]
    assert slot.screenshot == b"png"

def test_threaded_write(context, run):
    backend = ThreadRecordingBackend()
    saves = SaveSystem(context, backend, SaveSettings(save_with_threading=True))

    slot = run(saves.save_game(1))

    assert slot.slot_id == 1
    assert backend.threads[0] is not threading.main_thread()

def test_save_waits_while_loading(context, backend, run):
    loading = [True]
    settings = SaveSettings()
    directory = SaveSlotDirectory(backend, OptionsStore(), settings)
    pipeline = CapturePipeline(
        context, SaveCodec(), backend, directory, settings, is_loading=lambda: loading[0],
    )

    task = pipeline.save(1)
    context.game.step()

    assert not task.done
    assert backend.read(1, 0) is None

    loading[0] = False
    assert run(task).slot_id == 1
