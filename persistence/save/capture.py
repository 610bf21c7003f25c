"""
Capture pipeline - live game state into a save slot.

    save() ──► BEFORE_SAVE ──► slot limit check
           └─► task: wait for loads and saves ──► slot limit recheck
                     ──► scenes, globals, players
                     ──► [end of frame: screenshot]
                     ──► snapshot ──► encode + write (worker or loop)
                     ──► directory refresh ──► AFTER_SAVE

Every step up to the snapshot runs on the loop. Only encoding the snapshot
and writing it may run on the background worker.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from runtime.core.events import SaveEvent
from runtime.core.tasks import Coroutine, Task, WaitForEndOfFrame, WaitUntil
from persistence.context import GameContext
from persistence.save.codec import SaveCodec
from persistence.save.directory import SaveSlotDirectory
from persistence.save.errors import SaveFailed, SaveFailureReason, StorageError
from persistence.save.model import AUTOSAVE_SLOT_ID, SaveDataModel, SaveSlotRef
from persistence.save.screenshot import NullScreenshotProvider, ScreenshotProvider
from persistence.save.settings import SaveSettings
from persistence.save.storage import StorageBackend

logger = logging.getLogger(__name__)


class CapturePipeline:
    """
    Usage:
        task = pipeline.save(slot_id=3, profile_id=0, label="Chapter 2")
        game.tasks.run_until_complete(task)
    """

    def __init__(
        self,
        context: GameContext,
        codec: SaveCodec,
        backend: StorageBackend,
        directory: SaveSlotDirectory,
        settings: SaveSettings,
        screenshots: ScreenshotProvider | None = None,
        is_loading: Callable[[], bool] = lambda: False,
    ):
        self.context = context
        self.codec = codec
        self.backend = backend
        self.directory = directory
        self.settings = settings
        self.screenshots = screenshots or NullScreenshotProvider()
        self._is_loading = is_loading
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def save(self, slot_id: int, profile_id: int = 0, label: str = "") -> Task:
        """
        Save the game into a slot.

        Returns:
            A task whose result is the saved SaveSlotRef. If the save is
            refused or fails, the task's exception is a SaveFailed.
        """
        self.context.event_bus.publish(SaveEvent.BEFORE_SAVE, slot_id=slot_id)
        if self.slot_limit_reached(slot_id, profile_id):
            return Task.completed(exception=self._refuse(slot_id), name=f"save-{slot_id}")
        return self.context.tasks.start(self._save(slot_id, profile_id, label), name=f"save-{slot_id}")

    def slot_limit_reached(self, slot_id: int, profile_id: int = 0, refresh: bool = False) -> bool:
        """Whether saving to slot_id would add a slot beyond max_saves. The autosave never counts."""
        if slot_id == AUTOSAVE_SLOT_ID:
            return False
        if refresh:
            self.directory.gather(profile_id)
        return (self.directory.count(profile_id) >= self.settings.max_saves
                and not self.directory.exists(slot_id, profile_id))

    def _refuse(self, slot_id: int) -> SaveFailed:
        logger.warning("Cannot save - maximum number of save files has already been reached")
        self._fail(slot_id, SaveFailureReason.SLOT_LIMIT_REACHED)
        return SaveFailed(SaveFailureReason.SLOT_LIMIT_REACHED)

    def _save(self, slot_id: int, profile_id: int, label: str) -> Coroutine:
        yield WaitUntil(lambda: not self._is_loading() and not self._in_flight)
        # Saves queued behind another may have been admitted against an older slot count
        if self.slot_limit_reached(slot_id, profile_id, refresh=True):
            raise self._refuse(slot_id)

        self._in_flight = True
        try:
            model = self.context.save_data
            self.context.level_storage.store_open_scenes(model, self.context.scene_manager.open_scenes)
            self.capture_main_data(model)

            screenshot: Optional[bytes] = None
            if self.settings.takes_screenshot(slot_id == AUTOSAVE_SLOT_ID):
                yield WaitForEndOfFrame()
                screenshot = self.screenshots.capture(self.settings.screenshot_resolution_factor)

            snapshot = model.model_copy(deep=True)
            if self.settings.save_with_threading:
                future = self.context.game.worker.submit(self._write, snapshot, slot_id, profile_id, screenshot)
                yield future
                future.result()
            else:
                self._write(snapshot, slot_id, profile_id, screenshot)
        except StorageError as e:
            logger.error("Save to slot %d failed: %s", slot_id, e)
            self._fail(slot_id, SaveFailureReason.STORAGE_ERROR)
            raise SaveFailed(SaveFailureReason.STORAGE_ERROR, str(e)) from e
        except ValueError as e:
            logger.error("Cannot encode save for slot %d: %s", slot_id, e)
            self._fail(slot_id, SaveFailureReason.ENCODE_ERROR)
            raise SaveFailed(SaveFailureReason.ENCODE_ERROR, str(e)) from e
        finally:
            self._in_flight = False

        slot = self.directory.record_save(slot_id, profile_id, label)
        logger.info("Saved slot %d (profile %d) as '%s'", slot_id, profile_id, slot.label if slot else label)
        self.context.event_bus.publish(SaveEvent.AFTER_SAVE, slot_id=slot_id, slot=slot)
        return slot

    def _write(self, snapshot: SaveDataModel, slot_id: int, profile_id: int, screenshot: Optional[bytes]) -> SaveSlotRef:
        return self.backend.write(slot_id, profile_id, self.codec.encode(snapshot), screenshot)

    def _fail(self, slot_id: int, reason: SaveFailureReason) -> None:
        self.context.event_bus.publish(SaveEvent.SAVE_FAILED, slot_id=slot_id, reason=reason)

    # Global state

    def capture_main_data(self, model: SaveDataModel) -> None:
        """Write the global systems and every player into the model."""
        ctx = self.context
        main = model.main_data
        main.current_player_id = ctx.players.active_player_id
        main.runtime_variables_data = ctx.variables.capture()
        main.custom_token_data = ctx.custom_tokens.capture()
        main.menu_data = ctx.menus.capture()
        main.active_lists_data = ctx.action_lists.capture()
        main.timers_data = ctx.timers.capture()
        main.movement_method = ctx.movement_method.value
        main.open_scenes = ctx.open_scene_names()
        main.playtime = ctx.playtime
        ctx.level_storage.store_persistent(main)

        self.save_current_player_data(model)
        self.save_non_player_data(model, stop_following=False)

    def save_current_player_data(self, model: SaveDataModel) -> None:
        """Read the active player live into its PlayerData."""
        ctx = self.context
        data = model.get_player_data(ctx.players.active_player_id)

        scene_name = ctx.scene_manager.current_name
        if data.current_scene != scene_name:
            data.previous_scene = data.current_scene
            data.current_scene = scene_name

        data.inventory_data = ctx.inventory.capture()
        data.held_item_id = ctx.inventory.selected_item_id
        data.documents_data = ctx.documents.capture()
        data.objectives_data = ctx.objectives.capture()
        ctx.camera.save_data(data)

        player = ctx.players.active
        if player is not None:
            player.save_data(data)

    def save_non_player_data(self, model: SaveDataModel, stop_following: bool) -> None:
        """
        Update the PlayerData of inactive players that are in an open scene.

        Players elsewhere keep their last-known data.
        """
        if not self.settings.player_switching:
            return
        for player in self.context.players.inactive():
            if not player.present:
                continue
            if stop_following:
                player.stop_following()
            data = model.get_player_data(player.player_id)
            data.current_scene = player.scene_name
            player.save_data(data)
