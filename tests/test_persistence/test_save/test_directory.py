import time

import pytest
from persistence.save.directory import SaveSlotDirectory
from persistence.save.options import OptionsStore
from persistence.save.settings import SaveSettings, SaveTimeDisplay

@pytest.fixture
def options():
    return OptionsStore()

@pytest.fixture
def directory(backend, options):
    return SaveSlotDirectory(backend, options, SaveSettings())

def write(backend, *slot_ids, profile_id=0):
    for slot_id in slot_ids:
        backend.write(slot_id, profile_id, b"data")

def test_gather_applies_default_labels(directory, backend):
    write(backend, 2, 0, 1)

    slots = directory.gather()

    assert [(s.slot_id, s.label) for s in slots] == [(0, "Autosave"), (1, "Save 1"), (2, "Save 2")]

def test_gather_applies_stored_labels(directory, backend, options):
    write(backend, 1)
    options.set_label(0, 1, "Chapter 2")

    assert directory.gather()[0].label == "Chapter 2"

def test_cache_is_only_replaced_by_gather(directory, backend):
    write(backend, 1)
    directory.gather()

    write(backend, 2)
    assert [s.slot_id for s in directory.slots()] == [1]

    directory.gather()
    assert [s.slot_id for s in directory.slots()] == [1, 2]

def test_order_by_update_time(backend, options):
    directory = SaveSlotDirectory(backend, options, SaveSettings(order_saves_by_update_time=True))
    write(backend, 1, 3, 2)

    assert [s.slot_id for s in directory.gather()] == [2, 3, 1]
    assert directory.most_recent().slot_id == 2

def test_count_excludes_autosave(directory, backend):
    write(backend, 0, 1, 2)

    assert directory.count() == 2
    assert directory.count(include_autosave=True) == 3

@pytest.mark.parametrize("existing, expected", [
    ((), 1),
    ((1, 2, 3), 4),
    ((1, 3), 2),
    ((0, 1, 2), 3),
    ((0, 2), 1),
    ((2, 3, 5), 4),
    ((5,), 6),
])
def test_new_save_id(directory, backend, existing, expected):
    write(backend, *existing)

    assert directory.new_save_id() == expected

def test_default_label_time_suffix(backend, options):
    stamp = 1_700_000_000.0
    local = time.localtime(stamp)

    date_only = SaveSlotDirectory(backend, options, SaveSettings(save_time_display=SaveTimeDisplay.DATE_ONLY))
    with_time = SaveSlotDirectory(backend, options, SaveSettings(save_time_display=SaveTimeDisplay.TIME_AND_DATE))

    assert date_only.default_label_for(0, stamp) == f"Autosave ({time.strftime('%Y-%m-%d', local)})"
    assert with_time.default_label_for(4, stamp) == f"Save 4 ({time.strftime('%H:%M %Y-%m-%d', local)})"

def test_rename(directory, backend, options):
    write(backend, 1)

    assert directory.rename(1, "By the docks")
    assert directory.find(1).label == "By the docks"
    assert options.get_label(0, 1) == "By the docks"

    assert not directory.rename(7, "Missing")

def test_delete_updates_last_save(directory, backend, options):
    write(backend, 1, 2)
    directory.record_save(1, label="First")
    directory.record_save(2)

    assert directory.delete(2)

    assert not directory.exists(2)
    assert options.get(0).last_save_id == 1

    assert directory.delete(1)
    assert options.get(0).last_save_id == -1
    assert options.get_label(0, 1) is None

def test_delete_missing_slot(directory):
    assert not directory.delete(9)

def test_record_save_returns_labelled_ref(directory, backend, options):
    write(backend, 3)

    slot = directory.record_save(3, label="Chapter 2")

    assert slot.slot_id == 3
    assert slot.label == "Chapter 2"
    assert options.get(0).last_save_id == 3

def test_delete_profile(backend, options):
    directory = SaveSlotDirectory(backend, options, SaveSettings(use_profiles=True))
    write(backend, 1, 2, profile_id=1)
    write(backend, 1, profile_id=0)
    directory.record_save(1, profile_id=1)

    directory.delete_profile(1)

    assert directory.gather(1) == []
    assert [s.slot_id for s in directory.gather(0)] == [1]
    assert options.get(1).last_save_id == -1
