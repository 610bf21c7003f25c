"""
Core Game class with fixed timestep game loop.

The Game class is the host the save system runs inside. It handles:
- Window creation (Pygame), skipped when headless
- Fixed timestep update loop driving scenes and cooperative tasks
- End-of-frame resumption for tasks waiting on a rendered frame
- The single background worker
"""

from __future__ import annotations

import logging
import time

import pygame

from runtime.core.events import EventBus, EngineEvent
from runtime.core.scene import SceneManager
from runtime.core.tasks import BackgroundWorker, TaskRunner
from runtime.log import configure_logging

logger = logging.getLogger(__name__)


class GameConfig:
    """Configuration for the game loop."""

    def __init__(
        self,
        title: str = "Narrative Game",
        width: int = 1280,
        height: int = 720,
        target_fps: int = 60,
        fixed_timestep: float = 1 / 60,
        max_frame_skip: int = 5,
        headless: bool = False,
        scene_load_ticks: int = 1,
        debug: bool = False,
    ):
        self.title = title
        self.width = width
        self.height = height
        self.target_fps = target_fps
        self.fixed_timestep = fixed_timestep
        self.max_frame_skip = max_frame_skip
        self.headless = headless
        self.scene_load_ticks = scene_load_ticks
        self.debug = debug


class Game:
    """
    Main loop host.

    Implements a fixed timestep game loop with variable rendering.
    Tasks are ticked after scenes on every fixed update, and resumed
    at end of frame after each render.

    Usage:
        game = Game(GameConfig(headless=True))
        game.scene_manager.register("Harbor", HarborScene)
        game.scene_manager.load_immediately("Harbor")
        game.step()
    """

    def __init__(self, config: GameConfig | None = None):
        self.config = config or GameConfig()
        self._running = False
        self._paused = False

        self.screen = None
        if not self.config.headless:
            pygame.init()
            self.screen = pygame.display.set_mode((self.config.width, self.config.height))
            pygame.display.set_caption(self.config.title)

        # Core systems
        self.event_bus = EventBus()
        self.scene_manager = SceneManager(self.event_bus, self.config.scene_load_ticks)
        self.tasks = TaskRunner()
        self.worker = BackgroundWorker()

        # Timing
        self._clock = pygame.time.Clock() if not self.config.headless else None
        self._accumulator = 0.0
        self._current_time = time.perf_counter()
        self.frame_count = 0

    @property
    def is_paused(self) -> bool:
        return self._paused

    def run(self) -> None:
        """
        Start the main game loop.

        Uses a fixed timestep for updates with variable rendering.
        """
        configure_logging(self.config.debug)
        self._running = True
        self._current_time = time.perf_counter()
        self.event_bus.publish(EngineEvent.GAME_START)

        while self._running:
            new_time = time.perf_counter()
            frame_time = min(new_time - self._current_time, 0.25)
            self._current_time = new_time
            self._accumulator += frame_time

            self._process_events()

            updates = 0
            while self._accumulator >= self.config.fixed_timestep:
                if not self._paused:
                    self._fixed_update(self.config.fixed_timestep)
                self._accumulator -= self.config.fixed_timestep
                updates += 1

                # Prevent too many updates per frame
                if updates >= self.config.max_frame_skip:
                    self._accumulator = 0
                    break

            self._render()
            if self._clock:
                self._clock.tick(self.config.target_fps)

        self._shutdown()

    def step(self, dt: float | None = None) -> None:
        """Run exactly one fixed update and one frame. Used headless."""
        self._fixed_update(dt if dt is not None else self.config.fixed_timestep)
        self._render()

    def quit(self) -> None:
        """Request game shutdown."""
        self._running = False

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def _process_events(self) -> None:
        if self.config.headless:
            return
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.quit()

    def _fixed_update(self, dt: float) -> None:
        self.scene_manager.update(dt)
        self.tasks.tick()

    def _render(self) -> None:
        if self.screen is not None:
            pygame.display.flip()
        self.frame_count += 1
        self.tasks.end_of_frame()

    def _shutdown(self) -> None:
        """Clean shutdown."""
        self.event_bus.publish(EngineEvent.GAME_QUIT)
        self.tasks.cancel_all()
        self.worker.shutdown()
        self.scene_manager.clear()
        if not self.config.headless:
            pygame.quit()
