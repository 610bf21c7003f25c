import pytest
from runtime.core.events import SaveEvent
from persistence.remember.units import RememberTransform, TransformData
from persistence.save.codec import SaveCodec
from persistence.save.errors import LoadFailureReason
from persistence.save.model import MainData, SaveDataModel
from persistence.save.options import OptionsStore
from persistence.save.settings import SaveSettings
from persistence.save.storage import FileStorageBackend, MemoryStorageBackend
from persistence.save.system import SaveSystem
from persistence.state.inventory import ItemStack
from persistence.state.objects import SceneObject

def other_game_save(variables_data):
    backend = MemoryStorageBackend()
    model = SaveDataModel(main_data=MainData(runtime_variables_data=variables_data))
    backend.write(1, 0, SaveCodec().encode(model))
    return backend

# Slots

def test_save_new_game_uses_first_free_id(save_system, run):
    run(save_system.save_game(1))
    run(save_system.save_game(3))

    slot = run(save_system.save_new_game(label="Fresh"))

    assert slot.slot_id == 2
    assert slot.label == "Fresh"

def test_autosave_label(save_system, run):
    slot = run(save_system.save_auto_save())

    assert slot.slot_id == 0
    assert slot.is_autosave
    assert slot.label == "Autosave"

def test_rename_and_delete(save_system, run):
    run(save_system.save_game(1))
    run(save_system.save_game(2))

    assert save_system.rename_save(1, "Docks")
    assert not save_system.rename_save(1, "")
    assert save_system.save_files[0].label == "Docks"

    assert save_system.delete_save(2)
    assert not save_system.does_save_exist(2)
    assert save_system.last_save_id == 1

def test_profiles(context, backend, run):
    saves = SaveSystem(context, backend, SaveSettings(use_profiles=True))
    saves.profile_id = 1
    run(saves.save_game(1, label="Ben's"))
    saves.profile_id = 2
    run(saves.save_game(1, label="Cy's"))

    assert saves.save_files[0].label == "Cy's"

    saves.delete_profile(1)
    saves.profile_id = 1
    assert saves.gather_save_files() == []

def test_profile_is_zero_without_profiles(save_system):
    save_system.profile_id = 4

    assert save_system.profile_id == 0

def test_file_backend_end_to_end(context, tmp_path, run):
    backend = FileStorageBackend(tmp_path / "saves")
    saves = SaveSystem(
        context,
        backend,
        SaveSettings(use_profiles=True, save_compression=True),
        options=OptionsStore(tmp_path / "options.json"),
    )
    context.variables.set("gold", 12)
    run(saves.save_game(1, label="On disk"))
    context.variables.set("gold", 0)

    reopened = SaveSystem(context, backend, SaveSettings(use_profiles=True), options=OptionsStore(tmp_path / "options.json"))
    run(reopened.continue_game())

    assert (tmp_path / "saves" / "save_1_0.save").exists()
    assert reopened.save_files[0].label == "On disk"
    assert context.variables.get("gold") == 12

def test_file_backend_follows_save_settings(context, tmp_path, run):
    saves = SaveSystem(
        context,
        FileStorageBackend(tmp_path),
        SaveSettings(use_profiles=True, save_file_prefix="game"),
    )
    saves.profile_id = 1
    context.variables.set("gold", 11)
    run(saves.save_game(3))
    saves.profile_id = 2
    context.variables.set("gold", 22)
    run(saves.save_game(3))

    saves.profile_id = 1
    run(saves.load_game(3))

    assert sorted(p.name for p in tmp_path.iterdir()) == ["game_3_1.save", "game_3_2.save"]
    assert context.variables.get("gold") == 11

# Continue

def test_continue_game_loads_last_save(save_system, context, run):
    context.variables.set("gold", 2)
    run(save_system.save_game(2))
    context.variables.set("gold", 1)
    run(save_system.save_game(1))
    context.variables.set("gold", 0)

    run(save_system.continue_game())

    assert context.variables.get("gold") == 1

def test_continue_most_recent(save_system, context, run):
    context.variables.set("gold", 3)
    run(save_system.save_game(3))
    context.variables.set("gold", 1)
    run(save_system.save_game(1))
    context.variables.set("gold", 0)

    run(save_system.continue_most_recent())

    assert context.variables.get("gold") == 1

def test_continue_without_saves(save_system):
    assert save_system.continue_game().result is None
    assert save_system.continue_most_recent().result is None

# Import

def test_import_global_variables(save_system, context, recorder, run):
    backend = other_game_save("1:Chapter 9|2:1|3:500")

    slot = run(save_system.import_game(1, 0, backend, bool_var_id=2))

    assert slot.slot_id == 1
    assert context.variables.get("chapter") == "Chapter 9"
    assert context.variables.get("gold") == 500
    assert recorder.types == [SaveEvent.BEFORE_IMPORT, SaveEvent.AFTER_IMPORT]

def test_import_refused_without_flag(save_system, context, recorder, run):
    backend = other_game_save("1:Chapter 9|2:0")

    assert run(save_system.import_game(1, 0, backend, bool_var_id=2)) is None

    assert context.variables.get("chapter") == "Chapter 1"
    failed = recorder.of(SaveEvent.IMPORT_FAILED)
    assert failed[0]["reason"] is LoadFailureReason.IMPORT_REFUSED

def test_import_missing_slot(save_system, recorder):
    task = save_system.import_game(4, 0, MemoryStorageBackend())

    assert task.result is None
    assert recorder.of(SaveEvent.IMPORT_FAILED)[0]["reason"] is LoadFailureReason.NO_DATA

def test_can_import(save_system):
    codec = SaveCodec()
    allowed = codec.encode(SaveDataModel(main_data=MainData(runtime_variables_data="2:1")))
    refused = codec.encode(SaveDataModel(main_data=MainData(runtime_variables_data="2:0")))

    assert save_system.can_import(allowed, bool_var_id=2)
    assert not save_system.can_import(refused, bool_var_id=2)
    assert save_system.can_import(refused)
    assert not save_system.can_import(b"garbage")

def test_extract_save_file_variables(save_system, context, run):
    context.variables.set("chapter", "Chapter 3")
    slot = run(save_system.save_game(1))
    context.variables.set("chapter", "Chapter 1")
    received = []

    save_system.extract_save_file_variables(slot, received.append)

    assert received[0].get("chapter") == "Chapter 3"
    assert context.variables.get("chapter") == "Chapter 1"

# Players

def test_items_of_active_and_inactive_players(save_system, context):
    context.inventory.add(42)

    save_system.assign_items_to_player(1, [ItemStack(5, 2)])

    assert save_system.get_player_data(1).inventory_data == "5:2"
    assert save_system.get_items_from_player(1) == [ItemStack(5, 2)]
    assert save_system.get_items_from_player(0) == [ItemStack(42, 1)]

    save_system.assign_items_to_player(0, [ItemStack(9, 1)])
    assert context.inventory.item_ids == [9]

def test_switch_player_swaps_inventories(context, backend, recorder, run):
    saves = SaveSystem(context, backend, SaveSettings(player_switching=True))
    context.inventory.add(42)

    assert run(saves.switch_player(1)) is True

    assert context.players.active_player_id == 1
    assert context.inventory.items == []
    assert recorder.of(SaveEvent.PLAYER_SWITCHED)[0]["player_id"] == 1

    run(saves.switch_player(0))
    assert context.inventory.has(42)

def test_switch_player_opens_their_scene(context, game, backend, run):
    saves = SaveSystem(context, backend, SaveSettings(player_switching=True))
    saves.get_player_data(1).current_scene = "Market"
    saves.get_player_data(1).x = 3.0

    run(saves.switch_player(1))

    ben = context.players.get(1)
    ada = context.players.get(0)
    assert game.scene_manager.current_name == "Market"
    assert ben.x == 3.0
    assert ben.present
    assert not ada.present
    assert saves.get_player_data(0).current_scene == "Harbor"

def test_switch_player_refusals(save_system, context):
    assert save_system.switch_player(1).result is False

    saves = SaveSystem(context, MemoryStorageBackend(), SaveSettings(player_switching=True))
    assert saves.switch_player(7).result is False
    assert saves.switch_player(0).result is True

# Scene changes

def test_revisited_scene_is_restored_from_working_model(save_system, game):
    game.scene_manager.current.objects.get("boat").move_to(50.0, 0.0)
    game.scene_manager.change_scene("Market")
    game.step()
    game.scene_manager.change_scene("Harbor")
    game.step()

    assert game.scene_manager.current.objects.get("boat").x == 50.0

# Persistent units

def test_persistent_units_survive_in_main_data(save_system, context, backend, run):
    jukebox = SceneObject("jukebox", x=1.0)
    context.level_storage.register_persistent(RememberTransform(100, jukebox))
    run(save_system.save_game(1))

    saved = SaveCodec().decode(backend.read(1, 0)).main_data.persistent_data
    assert TransformData.model_validate_json(saved[100]).x == 1.0

    jukebox.move_to(9.0, 9.0)
    run(save_system.load_game(1))
    assert jukebox.x == 1.0

# Auto-save

def test_timed_auto_save(save_system, context, backend, recorder):
    save_system.enable_auto_save(interval=10.0)

    save_system.update(6.0)
    assert backend.read(0, 0) is None

    save_system.update(6.0)
    assert backend.read(0, 0) is not None
    assert SaveEvent.AUTO_SAVE_TRIGGERED in recorder.types
    assert context.playtime == 12.0

def test_auto_save_disabled(save_system, backend):
    save_system.enable_auto_save(interval=1.0)
    save_system.disable_auto_save()

    save_system.update(5.0)

    assert backend.read(0, 0) is None

def test_map_change_auto_save(save_system, game, backend):
    save_system.enable_auto_save(interval=0, on_map_change=True)

    game.scene_manager.change_scene("Market")
    game.step()

    model = SaveCodec().decode(backend.read(0, 0))
    assert model.main_data.open_scenes == ["Market"]

def test_map_change_auto_save_off(save_system, backend):
    save_system.enable_auto_save(interval=0, on_map_change=False)

    assert save_system.trigger_map_change_save() is None

def test_playtime_formatted(save_system, context):
    context.playtime = 3725.0

    assert save_system.playtime_formatted == "01:02:05"
