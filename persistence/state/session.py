"""
Global session state: menus, running ActionLists, timers and the
movement method.

The ActionList executor itself is not modelled. ActionListManager only
tracks which lists are running and how far they got, which is all a save
needs, and can kill them all before a scene change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from persistence.save import tokens

logger = logging.getLogger(__name__)


class MovementMethod(Enum):
    DIRECT = "direct"
    POINT_AND_CLICK = "point_and_click"
    FIRST_PERSON = "first_person"
    NONE = "none"


# Menus

@dataclass
class MenuState:
    visible: bool = False
    locked: bool = False


class MenuSystem:
    """Visibility and lock state of named menus."""

    def __init__(self, names: list[str] | None = None):
        self._menus: dict[str, MenuState] = {name: MenuState() for name in names or []}

    def get(self, name: str) -> MenuState:
        return self._menus.setdefault(name, MenuState())

    def show(self, name: str) -> None:
        self.get(name).visible = True

    def hide(self, name: str) -> None:
        self.get(name).visible = False

    def lock(self, name: str, locked: bool = True) -> None:
        self.get(name).locked = locked

    def is_visible(self, name: str) -> bool:
        return name in self._menus and self._menus[name].visible

    def is_locked(self, name: str) -> bool:
        return name in self._menus and self._menus[name].locked

    def capture(self) -> str:
        return tokens.join_tokens(
            (tokens.escape(name), f"{int(state.visible)},{int(state.locked)}")
            for name, state in self._menus.items()
        )

    def restore(self, data: str) -> None:
        for key, raw in tokens.split_tokens(data):
            visible, _, locked = raw.partition(",")
            state = self.get(tokens.unescape(key))
            state.visible = tokens.parse_bool(visible)
            state.locked = tokens.parse_bool(locked)


# ActionLists

@dataclass
class RunningList:
    name: str
    resume_index: int = 0
    paused: bool = False


class ActionListManager:
    """Bookkeeping for ActionLists that are running in the background."""

    def __init__(self):
        self._running: dict[str, RunningList] = {}

    def run(self, name: str, resume_index: int = 0) -> RunningList:
        running = RunningList(name, resume_index)
        self._running[name] = running
        return running

    def advance(self, name: str, resume_index: int) -> None:
        if name in self._running:
            self._running[name].resume_index = resume_index

    def pause(self, name: str) -> None:
        if name in self._running:
            self._running[name].paused = True

    def end(self, name: str) -> None:
        self._running.pop(name, None)

    def is_running(self, name: str) -> bool:
        return name in self._running

    def get(self, name: str) -> Optional[RunningList]:
        return self._running.get(name)

    @property
    def running(self) -> list[RunningList]:
        return list(self._running.values())

    def kill_all(self) -> None:
        if self._running:
            logger.debug("Killing %d running ActionLists", len(self._running))
        self._running.clear()

    def capture(self) -> str:
        return tokens.join_tokens(
            (tokens.escape(r.name), f"{r.resume_index},{int(r.paused)}") for r in self._running.values()
        )

    def restore(self, data: str) -> None:
        self._running.clear()
        for key, raw in tokens.split_tokens(data):
            index, _, paused = raw.partition(",")
            try:
                running = self.run(tokens.unescape(key), int(index))
            except ValueError:
                logger.warning("Ignoring malformed ActionList entry '%s:%s'", key, raw)
                continue
            running.paused = tokens.parse_bool(paused)


# Timers

@dataclass
class Timer:
    name: str
    duration: float
    remaining: float
    running: bool = True

    @property
    def finished(self) -> bool:
        return self.remaining <= 0


class Timers:
    """Named countdown timers, advanced by update(dt)."""

    def __init__(self):
        self._timers: dict[str, Timer] = {}

    def start(self, name: str, duration: float) -> Timer:
        timer = Timer(name, duration, duration)
        self._timers[name] = timer
        return timer

    def stop(self, name: str) -> None:
        if name in self._timers:
            self._timers[name].running = False

    def get(self, name: str) -> Optional[Timer]:
        return self._timers.get(name)

    def update(self, dt: float) -> None:
        for timer in self._timers.values():
            if timer.running and not timer.finished:
                timer.remaining = max(0.0, timer.remaining - dt)

    def capture(self) -> str:
        return tokens.join_tokens(
            (tokens.escape(t.name), f"{t.remaining},{t.duration},{int(t.running)}")
            for t in self._timers.values()
        )

    def restore(self, data: str) -> None:
        self._timers.clear()
        for key, raw in tokens.split_tokens(data):
            try:
                remaining, duration, running = raw.split(",")
                self._timers[tokens.unescape(key)] = Timer(
                    tokens.unescape(key), float(duration), float(remaining), tokens.parse_bool(running)
                )
            except ValueError:
                logger.warning("Ignoring malformed timer entry '%s:%s'", key, raw)
