"""
Screenshot providers for save slots.

The capture pipeline calls a provider right after the end of a rendered
frame. Providers return PNG bytes, or None when there is nothing to grab.
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from typing import Optional

import pygame

logger = logging.getLogger(__name__)


class ScreenshotProvider(ABC):

    @abstractmethod
    def capture(self, resolution_factor: float = 1.0) -> Optional[bytes]:
        ...


class NullScreenshotProvider(ScreenshotProvider):
    """Never takes a screenshot."""

    def capture(self, resolution_factor: float = 1.0) -> Optional[bytes]:
        return None


class PygameScreenshotProvider(ScreenshotProvider):
    """
    Grabs the pygame display surface.

    The image is scaled by the resolution factor, with both sides rounded
    down to a multiple of 4, and encoded as PNG.
    """

    def __init__(self, surface: pygame.Surface | None = None):
        self._surface = surface

    @staticmethod
    def scaled_size(width: int, height: int, factor: float) -> tuple[int, int]:
        factor = max(0.0, min(1.0, factor))
        return (
            max(4, int(width * factor) // 4 * 4),
            max(4, int(height * factor) // 4 * 4),
        )

    def capture(self, resolution_factor: float = 1.0) -> Optional[bytes]:
        surface = self._surface or pygame.display.get_surface()
        if surface is None:
            logger.warning("Cannot take screenshot - no display surface")
            return None

        size = self.scaled_size(surface.get_width(), surface.get_height(), resolution_factor)
        if size != surface.get_size():
            surface = pygame.transform.smoothscale(surface, size)

        buffer = io.BytesIO()
        pygame.image.save(surface, buffer, "screenshot.png")
        return buffer.getvalue()
