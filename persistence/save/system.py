"""
Save system - the single entry point for saving and loading.

Provides:
- Save to a slot, a new slot or the autosave slot
- Load a slot, the autosave, the last save or the most recent one
- Selective loads (one-shot policy)
- Import of another game's global variables
- Slot rename and delete, profile delete
- Timed and map-change auto-save
- Player switching with per-player state

Scene units are saved into the working SaveDataModel whenever their
scene closes, and restored from it when the scene opens again, so a save
covers every scene visited, not just the open ones.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from runtime.core.events import EngineEvent, Event, SaveEvent
from runtime.core.tasks import Coroutine, Task, WaitUntil
from persistence.context import GameContext
from persistence.save.capture import CapturePipeline
from persistence.save.codec import SaveCodec, get_format_handler
from persistence.save.directory import SaveSlotDirectory
from persistence.save.errors import LoadFailureReason
from persistence.save.model import AUTOSAVE_SLOT_ID, PlayerData, SaveSlotRef, SelectiveLoad
from persistence.save.options import OptionsStore
from persistence.save.restore import RestoreOrchestrator, reconcile_players
from persistence.save.screenshot import ScreenshotProvider
from persistence.save.settings import SaveSettings
from persistence.save.storage import MemoryStorageBackend, StorageBackend
from persistence.state.inventory import ItemStack, format_items, parse_items
from persistence.state.variables import Variables

logger = logging.getLogger(__name__)


class SaveSystem:
    """
    Manages saving and loading game state.

    Usage:
        saves = SaveSystem(context, FileStorageBackend("data/saves"))
        saves.save_game(3, label="Chapter 2")
        saves.load_game(3)
        saves.enable_auto_save(interval=300)  # Every 5 minutes
    """

    def __init__(
        self,
        context: GameContext,
        backend: StorageBackend | None = None,
        settings: SaveSettings | None = None,
        options: OptionsStore | None = None,
        screenshots: ScreenshotProvider | None = None,
        codec: SaveCodec | None = None,
    ):
        self.context = context
        self.settings = settings or SaveSettings()
        self.backend = backend or MemoryStorageBackend()
        self.backend.configure(self.settings)
        self.options = options or OptionsStore()
        self.codec = codec or SaveCodec(
            get_format_handler(self.settings.format),
            compress=self.settings.save_compression,
        )
        self.directory = SaveSlotDirectory(self.backend, self.options, self.settings)

        self.restorer = RestoreOrchestrator(
            context, self.codec, self.settings, is_saving=lambda: self.capture.in_flight,
        )
        self.capture = CapturePipeline(
            context, self.codec, self.backend, self.directory, self.settings,
            screenshots, is_loading=lambda: self.restorer.is_loading,
        )

        self._profile_id = 0
        self._selective_load = SelectiveLoad()
        self._switching_player = False

        # Auto-save
        self._auto_save_enabled: bool = False
        self._auto_save_interval: float = 300.0
        self._auto_save_timer: float = 0.0
        self._auto_save_on_map_change: bool = True

        bus = context.event_bus
        bus.subscribe(EngineEvent.SCENE_CHANGE_REQUESTED, self._on_scene_change_requested, priority=100)
        bus.subscribe(EngineEvent.SCENE_READY, self._on_scene_ready, priority=100)

    # Properties

    @property
    def profile_id(self) -> int:
        """The active profile, or 0 when profiles are not in use."""
        return self._profile_id if self.settings.use_profiles else 0

    @profile_id.setter
    def profile_id(self, value: int) -> None:
        self._profile_id = value

    @property
    def is_loading(self) -> bool:
        return self.restorer.is_loading

    @property
    def is_saving(self) -> bool:
        return self.capture.in_flight

    @property
    def is_busy(self) -> bool:
        return self.is_loading or self.is_saving or self._switching_player

    @property
    def playtime(self) -> float:
        return self.context.playtime

    @property
    def playtime_formatted(self) -> str:
        """Get playtime as HH:MM:SS string."""
        total = int(self.context.playtime)
        hours = total // 3600
        minutes = (total % 3600) // 60
        seconds = total % 60
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    # Slots

    def gather_save_files(self) -> list[SaveSlotRef]:
        return self.directory.gather(self.profile_id)

    @property
    def save_files(self) -> list[SaveSlotRef]:
        return self.directory.slots(self.profile_id)

    def does_save_exist(self, slot_id: int) -> bool:
        return self.directory.exists(slot_id, self.profile_id)

    def rename_save(self, slot_id: int, label: str) -> bool:
        if not label:
            return False
        return self.directory.rename(slot_id, label, self.profile_id)

    def delete_save(self, slot_id: int) -> bool:
        return self.directory.delete(slot_id, self.profile_id)

    def delete_profile(self, profile_id: int) -> None:
        """Delete every save of a profile, and its options."""
        self.directory.delete_profile(profile_id)
        logger.info("Deleted profile %d", profile_id)

    @property
    def last_save_id(self) -> int:
        return self.options.get(self.profile_id).last_save_id

    # Saving

    def save_game(self, slot_id: int, label: str = "") -> Task:
        return self.capture.save(slot_id, self.profile_id, label)

    def save_new_game(self, label: str = "") -> Task:
        return self.save_game(self.directory.new_save_id(self.profile_id), label)

    def save_auto_save(self) -> Task:
        return self.save_game(AUTOSAVE_SLOT_ID)

    # Loading

    def set_selective_load(self, policy: SelectiveLoad) -> None:
        """Narrow what the next load restores. Consumed by that load only."""
        self._selective_load = policy

    def load_game(self, slot_id: int) -> Task:
        policy, self._selective_load = self._selective_load, SelectiveLoad()

        slot = self.directory.find(slot_id, self.profile_id)
        if slot is None:
            logger.warning("Cannot load save %d - it does not exist", slot_id)
            self.context.event_bus.publish(SaveEvent.LOAD_FAILED, slot_id=slot_id, reason=LoadFailureReason.NO_DATA)
            return Task.completed(name=f"load-{slot_id}")
        return self.restorer.request_load(slot, self.backend, policy)

    def load_auto_save(self) -> Task:
        return self.load_game(AUTOSAVE_SLOT_ID)

    def continue_game(self) -> Task:
        """Load the slot that was saved last."""
        last = self.last_save_id
        if last < 0:
            logger.warning("Cannot continue - no save has been made")
            return Task.completed(name="continue")
        return self.load_game(last)

    def continue_most_recent(self) -> Task:
        """Load the slot with the newest update time."""
        slot = self.directory.most_recent(self.profile_id)
        if slot is None:
            logger.warning("Cannot continue - no save files found")
            return Task.completed(name="continue")
        return self.load_game(slot.slot_id)

    # Import

    def import_game(self, slot_id: int, profile_id: int, backend: StorageBackend, bool_var_id: int = -1) -> Task:
        """Import the global variables from another game's save slot."""
        for slot in backend.enumerate(profile_id):
            if slot.slot_id == slot_id:
                return self.restorer.request_import(slot, backend, bool_var_id)

        logger.warning("Cannot import save %d - it does not exist", slot_id)
        self.context.event_bus.publish(SaveEvent.IMPORT_FAILED, slot_id=slot_id, reason=LoadFailureReason.NO_DATA)
        return Task.completed(name=f"import-{slot_id}")

    def can_import(self, data: bytes | str | None, bool_var_id: int = -1) -> bool:
        return self.restorer.can_import(data, bool_var_id)

    def extract_save_file_variables(self, slot: SaveSlotRef, callback: Callable[[Optional[Variables]], None]) -> None:
        """Read a slot's header only and hand its global variables to callback."""
        def receive(_ref: SaveSlotRef, data: Optional[bytes]) -> None:
            header = self.codec.extract_main_data(data)
            callback(self.restorer.extract_variables(header) if header else None)

        self.backend.load(slot, receive)

    # Players

    def get_player_data(self, player_id: int) -> PlayerData:
        return self.context.save_data.get_player_data(player_id)

    def get_items_from_player(self, player_id: int) -> list[ItemStack]:
        if player_id == self.context.players.active_player_id:
            return self.context.inventory.items
        return parse_items(self.get_player_data(player_id).inventory_data)

    def assign_items_to_player(self, player_id: int, items: list[ItemStack]) -> None:
        data = format_items(items)
        if player_id == self.context.players.active_player_id:
            self.context.inventory.restore(data)
        else:
            self.get_player_data(player_id).inventory_data = data

    def switch_player(self, player_id: int) -> Task:
        """
        Make another player the active one.

        The current player's live state is stored first. If the new player
        is in another scene, that scene is opened before its state is
        restored.
        """
        ctx = self.context
        if not self.settings.player_switching:
            logger.warning("Cannot switch player - player switching is disabled")
            return Task.completed(False, name="switch-player")
        if ctx.players.get(player_id) is None:
            logger.warning("Cannot switch player - no player %d", player_id)
            return Task.completed(False, name="switch-player")
        if player_id == ctx.players.active_player_id:
            return Task.completed(True, name="switch-player")
        return ctx.tasks.start(self._switch_player(player_id), name="switch-player")

    def _switch_player(self, player_id: int) -> Coroutine:
        ctx = self.context
        scenes = ctx.scene_manager
        yield WaitUntil(lambda: not self.is_busy)

        self._switching_player = True
        try:
            model = ctx.save_data
            self.capture.save_current_player_data(model)
            self.capture.save_non_player_data(model, stop_following=True)
            ctx.level_storage.store_open_scenes(model, scenes.open_scenes)

            new_player = ctx.players.get(player_id)
            data = model.find_player_data(player_id)
            if data is None:
                data = model.get_player_data(player_id)
                new_player.save_data(data)
                data.current_scene = new_player.scene_name or scenes.current_name

            ctx.players.active_player_id = player_id
            model.main_data.current_player_id = player_id

            if data.current_scene and data.current_scene != scenes.current_name:
                if scenes.is_loading:
                    yield WaitUntil(lambda: not scenes.is_loading)
                if not scenes.change_scene(data.current_scene):
                    logger.error("Cannot switch player - scene '%s' cannot be opened", data.current_scene)
                yield WaitUntil(lambda: not scenes.is_loading)

            ctx.inventory.restore(data.inventory_data)
            ctx.documents.restore(data.documents_data)
            ctx.objectives.restore(data.objectives_data)
            reconcile_players(ctx, model, True)
            new_player.load_data(data, ctx.inventory)
            ctx.camera.load_data(data)
            yield from ctx.level_storage.restore_open_scenes(model, scenes.open_scenes)
        finally:
            self._switching_player = False

        logger.info("Switched to player %d", player_id)
        ctx.event_bus.publish(SaveEvent.PLAYER_SWITCHED, player_id=player_id)
        return True

    # Auto-save

    def enable_auto_save(self, interval: float = 300.0, on_map_change: bool = True) -> None:
        """
        Enable auto-save functionality.

        Args:
            interval: Seconds between auto-saves (0 to disable timed saves)
            on_map_change: Whether to auto-save on map transitions
        """
        self._auto_save_enabled = True
        self._auto_save_interval = interval
        self._auto_save_on_map_change = on_map_change
        self._auto_save_timer = 0.0

    def disable_auto_save(self) -> None:
        self._auto_save_enabled = False

    def update(self, dt: float) -> None:
        """
        Update the save system (call each fixed update).

        Handles playtime tracking and the auto-save timer.
        """
        self.context.playtime += dt

        if self._auto_save_enabled and self._auto_save_interval > 0:
            self._auto_save_timer += dt
            if self._auto_save_timer >= self._auto_save_interval:
                self._auto_save_timer = 0.0
                self.auto_save()

    def auto_save(self) -> Optional[Task]:
        """Perform an auto-save, unless a save or load is already running."""
        if self.is_busy:
            logger.debug("Skipping auto-save - save system is busy")
            return None
        self.context.event_bus.publish(SaveEvent.AUTO_SAVE_TRIGGERED)
        return self.save_auto_save()

    def trigger_map_change_save(self) -> Optional[Task]:
        """Called when map changes to trigger auto-save if enabled."""
        if self._auto_save_enabled and self._auto_save_on_map_change:
            return self.auto_save()
        return None

    # Scene transitions

    def _on_scene_change_requested(self, event: Event) -> None:
        if self.is_busy:
            return
        scenes = self.context.scene_manager.open_scenes
        self.context.level_storage.store_open_scenes(self.context.save_data, scenes)

    def _on_scene_ready(self, event: Event) -> None:
        if self.is_busy:
            return
        scene = event.get("scene")
        model = self.context.save_data
        reconcile_players(self.context, model, self.settings.player_switching)
        task = self.context.tasks.start(
            self.context.level_storage.restore_scene(scene, model.find_scene_data(scene.name)),
            name=f"restore-{scene.name}",
        )
        task.add_done_callback(lambda _task: self.trigger_map_change_save())
