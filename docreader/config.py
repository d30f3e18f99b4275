"""Configuration defaults and the engine settings derived from them.

Values come from ``DEFAULTS`` and can be overridden through the environment
with a ``DOCREADER_`` prefix (``DOCREADER_DEFAULT_WPM=500``), which Flask
parses as JSON where possible.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import platformdirs

APP_NAME = "docreader"

DEFAULTS = {
    "DATA_DIR": None,  # resolved lazily to platformdirs.user_data_dir
    "HOST": "127.0.0.1",
    "PORT": 5000,
    "LOG_LEVEL": "INFO",
    # height estimation
    "HEIGHT_SLACK": 800,
    "MIN_HEIGHT_DELTA": 500,
    "HEIGHT_GROWTH_FACTOR": 2.0,
    "FALLBACK_HEIGHT": 1000,
    "NATIVE_SIZE_HINT": True,
    "OBSERVE_INTERVAL_MS": 5000,
    # rsvp
    "DEFAULT_WPM": 400,
    "MIN_WPM": 50,
    "MAX_WPM": 3000,
    "EMPTY_NOTICE_SECONDS": 5.0,
}


def default_data_dir() -> str:
    return platformdirs.user_data_dir(APP_NAME, appauthor=False)


@dataclass(frozen=True)
class ReaderSettings:
    height_slack: int = 800
    min_height_delta: int = 500
    height_growth_factor: float = 2.0
    fallback_height: int = 1000
    native_size_hint: bool = True
    default_wpm: int = 400
    min_wpm: int = 50
    max_wpm: int = 3000
    empty_notice_seconds: float = 5.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ReaderSettings":
        return cls(
            height_slack=int(config.get("HEIGHT_SLACK", cls.height_slack)),
            min_height_delta=int(config.get("MIN_HEIGHT_DELTA", cls.min_height_delta)),
            height_growth_factor=float(config.get("HEIGHT_GROWTH_FACTOR", cls.height_growth_factor)),
            fallback_height=int(config.get("FALLBACK_HEIGHT", cls.fallback_height)),
            native_size_hint=bool(config.get("NATIVE_SIZE_HINT", cls.native_size_hint)),
            default_wpm=int(config.get("DEFAULT_WPM", cls.default_wpm)),
            min_wpm=int(config.get("MIN_WPM", cls.min_wpm)),
            max_wpm=int(config.get("MAX_WPM", cls.max_wpm)),
            empty_notice_seconds=float(config.get("EMPTY_NOTICE_SECONDS", cls.empty_notice_seconds)),
        )

    def clamp_wpm(self, wpm: int) -> int:
        return max(self.min_wpm, min(self.max_wpm, int(wpm)))
