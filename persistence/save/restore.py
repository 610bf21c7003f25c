"""
Restore orchestrator - a save slot back into the live game.

    IDLE ──► REQUEST_ISSUED ──► MAIN_DATA_EXTRACTED ─┬─► SCENE_TRANSITION_PENDING ─┐
                                                     └─► IN_PLACE_RESTORE ─────────┤
                                                                                    ▼
    IDLE ◄── STATE_APPLIED ◄── PLAYER_SPAWNED ◄─────────────────────────────────────┘

Every request gets a serial number and becomes the latest request. Data
that arrives for a request that is no longer the latest is dropped, and a
superseded request abandons its restore at its next suspension point.
There is no other cancellation and no timeout.

Failures never escape: they become LOAD_FAILED / IMPORT_FAILED events and
the live game is left as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

from runtime.core.events import SaveEvent
from runtime.core.tasks import Coroutine, Task, WaitUntil
from persistence.context import GameContext
from persistence.save.codec import SaveCodec
from persistence.save.errors import LoadFailed, LoadFailureReason
from persistence.save.model import SaveDataModel, SaveHeader, SaveSlotRef, SelectiveLoad
from persistence.save.settings import SaveSettings
from persistence.save.storage import StorageBackend
from persistence.state.session import MovementMethod
from persistence.state.variables import Variables, VariableType

logger = logging.getLogger(__name__)


class RestoreState(Enum):
    IDLE = auto()
    REQUEST_ISSUED = auto()
    MAIN_DATA_EXTRACTED = auto()
    SCENE_TRANSITION_PENDING = auto()
    IN_PLACE_RESTORE = auto()
    PLAYER_SPAWNED = auto()
    STATE_APPLIED = auto()


class RequestKind(Enum):
    LOAD = auto()
    IMPORT = auto()


@dataclass(frozen=True)
class LoadRequest:
    """The token a completion is compared against."""
    serial: int
    slot_id: int
    profile_id: int
    policy: SelectiveLoad
    kind: RequestKind = RequestKind.LOAD


def reconcile_players(context: GameContext, model: SaveDataModel, player_switching: bool) -> None:
    """Place every player identity according to the model."""
    open_scenes = context.open_scene_names()
    current = context.scene_manager.current_name
    for player in context.players:
        if not player_switching and player.player_id != context.players.active_player_id:
            continue
        data = model.get_player_data(player.player_id)
        context.players.update_presence(player, data, open_scenes, current)


class RestoreOrchestrator:
    """
    Usage:
        task = orchestrator.request_load(slot_ref, backend, SelectiveLoad())
        game.tasks.run_until_complete(task)
    """

    def __init__(
        self,
        context: GameContext,
        codec: SaveCodec,
        settings: SaveSettings,
        is_saving: Callable[[], bool] = lambda: False,
    ):
        self.context = context
        self.codec = codec
        self.settings = settings
        self.state = RestoreState.IDLE
        self._is_saving = is_saving
        self._serial = 0
        self._latest: Optional[LoadRequest] = None
        self._active: Optional[LoadRequest] = None

    @property
    def is_loading(self) -> bool:
        """True from a request until the latest request has finished."""
        return self._latest is not None

    @property
    def latest_request(self) -> Optional[LoadRequest]:
        return self._latest

    def is_superseded(self, request: LoadRequest) -> bool:
        return self._latest is None or self._latest.serial != request.serial

    # Requests

    def request_load(self, slot: SaveSlotRef, backend: StorageBackend, policy: SelectiveLoad | None = None) -> Task:
        """
        Load a slot.

        Returns:
            A task whose result is the slot on success, or None if the load
            failed or was superseded.
        """
        request = self._issue(slot, policy or SelectiveLoad(), RequestKind.LOAD)
        return self.context.tasks.start(self._load(request, slot, backend), name=f"load-{slot.slot_id}")

    def request_import(self, slot: SaveSlotRef, backend: StorageBackend, bool_var_id: int = -1) -> Task:
        """
        Import the global variables of another game's save.

        Only the header is read. If bool_var_id is given, that boolean
        variable must be True in the imported save.
        """
        request = self._issue(slot, SelectiveLoad(), RequestKind.IMPORT)
        return self.context.tasks.start(
            self._import(request, slot, backend, bool_var_id), name=f"import-{slot.slot_id}"
        )

    def _issue(self, slot: SaveSlotRef, policy: SelectiveLoad, kind: RequestKind) -> LoadRequest:
        self._serial += 1
        request = LoadRequest(self._serial, slot.slot_id, slot.profile_id, policy, kind)
        self._latest = request
        if self._active is None:
            self.state = RestoreState.REQUEST_ISSUED
        return request

    def _receive(self, request: LoadRequest, slot: SaveSlotRef, backend: StorageBackend) -> Coroutine:
        """Wait for any save, read the slot, and return its bytes. None if stale."""
        yield WaitUntil(lambda: not self._is_saving())

        received: list[Optional[bytes]] = []
        backend.load(slot, lambda _ref, data: received.append(data))
        if not received:
            yield WaitUntil(lambda: bool(received) or self.is_superseded(request))

        if self.is_superseded(request):
            logger.debug("Discarding stale response for slot %d (request %d)", request.slot_id, request.serial)
            return None

        # Only one restore applies at a time
        if self._active is not None:
            yield WaitUntil(lambda: self._active is None or self.is_superseded(request))
            if self.is_superseded(request):
                logger.debug("Request %d superseded while waiting to apply", request.serial)
                return None
        self._active = request
        return received[0] if received else None

    def _finish(self, request: LoadRequest) -> None:
        if self._active is request:
            self._active = None
        if self._latest is request:
            self._latest = None
            self.state = RestoreState.IDLE

    # Load

    def _load(self, request: LoadRequest, slot: SaveSlotRef, backend: StorageBackend) -> Coroutine:
        bus = self.context.event_bus
        try:
            data = yield from self._receive(request, slot, backend)
            if self._active is not request:
                return None

            model = self._extract(request, data)
            if model is None:
                return None

            applied = yield from self._restore(request, model)
            if not applied:
                return None
        except LoadFailed as e:
            logger.warning("Load of slot %d failed: %s", request.slot_id, e)
            bus.publish(SaveEvent.LOAD_FAILED, slot_id=request.slot_id, reason=e.reason)
            return None
        finally:
            self._finish(request)

        logger.info("Loaded slot %d (profile %d)", slot.slot_id, slot.profile_id)
        bus.publish(SaveEvent.AFTER_LOAD, slot_id=slot.slot_id, slot=slot)
        return slot

    def _extract(self, request: LoadRequest, data: Optional[bytes]) -> Optional[SaveDataModel]:
        if not data:
            raise LoadFailed(LoadFailureReason.NO_DATA, f"Slot {request.slot_id} has no data")

        text = self.codec.to_text(data)
        self.context.event_bus.publish(SaveEvent.BEFORE_LOAD, slot_id=request.slot_id)
        if text is None:
            raise LoadFailed(LoadFailureReason.DECODE_FAILED, "Payload cannot be decompressed")

        header = self.codec.extract_main_data(text)
        if header is None:
            raise LoadFailed(LoadFailureReason.DECODE_FAILED, "Main data cannot be read")

        if request.policy.load_scene_objects:
            scenes = self.codec.extract_scene_data(text)
            if scenes is None:
                raise LoadFailed(LoadFailureReason.DECODE_FAILED, "Scene data cannot be read")
        else:
            scenes = [s.model_copy(deep=True) for s in self.context.save_data.scene_data]

        self.state = RestoreState.MAIN_DATA_EXTRACTED
        return SaveDataModel.from_parts(header, scenes)

    def _restore(self, request: LoadRequest, model: SaveDataModel) -> Coroutine:
        """Move to the right scene, then apply the model. False if superseded."""
        ctx = self.context
        policy = request.policy
        scenes = ctx.scene_manager

        player_data = model.get_player_data(model.main_data.current_player_id)
        target_scene = player_data.current_scene or scenes.current_name

        needs_transition = self.settings.reload_scene_when_loading or (
            policy.load_scene and target_scene != scenes.current_name
        )
        scene_name = target_scene if policy.load_scene else scenes.current_name

        if needs_transition:
            if not scenes.has_scene(scene_name):
                raise LoadFailed(LoadFailureReason.SCENE_TRANSITION_FAILED, f"No scene named '{scene_name}'")
            self.state = RestoreState.SCENE_TRANSITION_PENDING

            if scenes.is_loading:
                yield WaitUntil(lambda: not scenes.is_loading)
            if not scenes.change_scene(scene_name, force_reload=True):
                raise LoadFailed(LoadFailureReason.SCENE_TRANSITION_FAILED, f"Cannot open scene '{scene_name}'")
            # The outgoing scene stays open until the change completes
            ctx.action_lists.kill_all()
            ctx.stop_moving_objects()
            yield WaitUntil(lambda: not scenes.is_loading or self.is_superseded(request))
            if self.is_superseded(request):
                logger.debug("Request %d superseded during scene change", request.serial)
                return False
        else:
            self.state = RestoreState.IN_PLACE_RESTORE
            ctx.stop_one_shot_sounds()

        ctx.save_data = model
        yield from self._apply(model, policy)
        return not self.is_superseded(request)

    def _apply(self, model: SaveDataModel, policy: SelectiveLoad) -> Coroutine:
        """The common restore sequence, each step gated by the policy."""
        ctx = self.context
        main = model.main_data

        if policy.load_menus:
            ctx.menus.restore(main.menu_data)

        ctx.players.active_player_id = main.current_player_id
        player_data = model.get_player_data(main.current_player_id)

        # Before the player, so the held item can be re-selected
        if policy.load_inventory:
            ctx.inventory.restore(player_data.inventory_data)

        if policy.load_player:
            reconcile_players(ctx, model, self.settings.player_switching)
            self.state = RestoreState.PLAYER_SPAWNED
            player = ctx.players.active
            if player is not None:
                player.load_data(player_data, ctx.inventory if policy.load_inventory else None)

        if policy.load_scene_objects:
            ctx.camera.load_data(player_data)

        ctx.timers.restore(main.timers_data)
        ctx.action_lists.restore(main.active_lists_data)
        if main.movement_method:
            try:
                ctx.movement_method = MovementMethod(main.movement_method)
            except ValueError:
                logger.warning("Unknown movement method '%s' in save", main.movement_method)

        if policy.load_scene and policy.load_sub_scenes:
            self._restore_sub_scenes(main.open_scenes[1:])

        if policy.load_inventory:
            ctx.documents.restore(player_data.documents_data)
            ctx.objectives.restore(player_data.objectives_data)

        if policy.load_variables:
            ctx.variables.restore(main.runtime_variables_data)
            ctx.custom_tokens.restore(main.custom_token_data)

        ctx.playtime = main.playtime
        yield from ctx.level_storage.restore_persistent(main)
        self.state = RestoreState.STATE_APPLIED

        if policy.load_scene_objects:
            yield from ctx.level_storage.restore_open_scenes(model, ctx.scene_manager.open_scenes)

    def _restore_sub_scenes(self, names: list[str]) -> None:
        scenes = self.context.scene_manager
        for scene in scenes.sub_scenes:
            if scene.name not in names:
                scenes.remove_sub_scene(scene.name)
        for name in names:
            scenes.add_sub_scene(name)

    # Import

    def _import(self, request: LoadRequest, slot: SaveSlotRef, backend: StorageBackend, bool_var_id: int) -> Coroutine:
        bus = self.context.event_bus
        try:
            data = yield from self._receive(request, slot, backend)
            if self._active is not request:
                return None
            if not data:
                raise LoadFailed(LoadFailureReason.NO_DATA, f"Import slot {slot.slot_id} has no data")

            bus.publish(SaveEvent.BEFORE_IMPORT, slot_id=slot.slot_id)
            header = self.codec.extract_main_data(data)
            if header is None:
                raise LoadFailed(LoadFailureReason.DECODE_FAILED, "Import main data cannot be read")
            if not self.passes_import_check(header, bool_var_id):
                raise LoadFailed(LoadFailureReason.IMPORT_REFUSED, f"Variable {bool_var_id} is not set")

            self.context.variables.restore(header.main_data.runtime_variables_data)
        except LoadFailed as e:
            logger.warning("Import of slot %d failed: %s", slot.slot_id, e)
            bus.publish(SaveEvent.IMPORT_FAILED, slot_id=slot.slot_id, reason=e.reason)
            return None
        finally:
            self._finish(request)

        logger.info("Imported variables from slot %d", slot.slot_id)
        bus.publish(SaveEvent.AFTER_IMPORT, slot_id=slot.slot_id, slot=slot)
        return slot

    def can_import(self, data: bytes | str | None, bool_var_id: int = -1) -> bool:
        """Whether another game's save data passes the import check."""
        header = self.codec.extract_main_data(data)
        return header is not None and self.passes_import_check(header, bool_var_id)

    def passes_import_check(self, header: SaveHeader, bool_var_id: int) -> bool:
        if bool_var_id < 0:
            return True
        variables = self.extract_variables(header)
        variable = variables.get_variable(bool_var_id)
        return variable is not None and variable.type is VariableType.BOOLEAN and bool(variable.value)

    def extract_variables(self, header: SaveHeader) -> Variables:
        """The game's global variables with the values saved in header."""
        variables = self.context.variables.copy()
        variables.restore(header.main_data.runtime_variables_data)
        return variables
