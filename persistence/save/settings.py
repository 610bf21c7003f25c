"""
Save system configuration.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any


class SaveScreenshots(Enum):
    NEVER = "never"
    ALWAYS = "always"
    EXCEPT_WHEN_AUTOSAVING = "except_when_autosaving"


class SaveTimeDisplay(Enum):
    NONE = "none"
    DATE_ONLY = "date_only"
    TIME_AND_DATE = "time_and_date"


class SaveFormat(Enum):
    JSON = "json"
    BINARY = "binary"


class SaveSettings:
    """Configuration for the save system."""

    def __init__(
        self,
        max_saves: int = 5,
        save_compression: bool = False,
        save_with_threading: bool = False,
        save_screenshots: SaveScreenshots = SaveScreenshots.NEVER,
        screenshot_resolution_factor: float = 1.0,
        reload_scene_when_loading: bool = False,
        use_profiles: bool = False,
        order_saves_by_update_time: bool = False,
        save_time_display: SaveTimeDisplay = SaveTimeDisplay.NONE,
        save_file_prefix: str = "save",
        format: SaveFormat = SaveFormat.JSON,
        player_switching: bool = False,
    ):
        self.max_saves = max_saves
        self.save_compression = save_compression
        self.save_with_threading = save_with_threading
        self.save_screenshots = SaveScreenshots(save_screenshots)
        self.screenshot_resolution_factor = screenshot_resolution_factor
        self.reload_scene_when_loading = reload_scene_when_loading
        self.use_profiles = use_profiles
        self.order_saves_by_update_time = order_saves_by_update_time
        self.save_time_display = SaveTimeDisplay(save_time_display)
        self.save_file_prefix = save_file_prefix
        self.format = SaveFormat(format)
        self.player_switching = player_switching

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SaveSettings:
        """Build settings from a dict. Enum options accept their string values."""
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> SaveSettings:
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))

    def takes_screenshot(self, is_autosave: bool) -> bool:
        if self.save_screenshots is SaveScreenshots.ALWAYS:
            return True
        if self.save_screenshots is SaveScreenshots.EXCEPT_WHEN_AUTOSAVING:
            return not is_autosave
        return False

    def file_suffix(self, slot_id: int, profile_id: int) -> str:
        """`_<slot>_<profile>` when profiles are in use, `_<slot>` otherwise."""
        if self.use_profiles:
            return f"_{slot_id}_{profile_id}"
        return f"_{slot_id}"
