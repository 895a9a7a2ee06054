#!/usr/bin/env python3
"""
testlens_base - Shared configuration for testlens tools.

This module provides:
- Settings: user-tunable behaviour (failure markers, debug logs, strict mode)
- find_settings_file / load_settings: settings discovery
- configure_logging: one-time logging setup for the CLI

Settings are read from the nearest `.testlens/settings.json` above the
working directory, then from `~/.config/testlens/settings.json`.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

# Project context configuration
TESTLENS_CONFIG_DIR = Path.home() / ".config" / "testlens"
SETTINGS_DIR_NAME = ".testlens"
SETTINGS_FILE_NAME = "settings.json"

# Set to 1 to enable debug logging regardless of settings
DEBUG_ENV_VAR = "TESTLENS_DEBUG"

# Lines of raw runner output that report a failure contain one of these
DEFAULT_FAILURE_MARKERS = [
    'FAIL',
    '✗',
    '×',
    '●',
    'FAILED',
    'Error:',
    'AssertionError',
    'expect(',
    'Expected:',
    'Received:',
]


@dataclass
class Settings:
    """testlens settings with their defaults."""
    failure_markers: List[str] = field(default_factory=lambda: list(DEFAULT_FAILURE_MARKERS))
    enable_debug_logs: bool = False
    strict_mode: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        """Build settings from a JSON object; unknown keys are ignored.

        Keys may be snake_case or camelCase. Values of the wrong type are
        logged and replaced by the default.
        """
        settings = cls()

        markers = _setting(data, 'failure_markers', 'failureMarkers')
        if markers is not None:
            if isinstance(markers, list) and all(isinstance(m, str) and m for m in markers):
                settings.failure_markers = list(markers)
            else:
                logging.warning("Ignoring failure_markers setting: expected a list of non-empty strings")

        for name, camel in (('enable_debug_logs', 'enableDebugLogs'), ('strict_mode', 'strictMode')):
            value = _setting(data, name, camel)
            if value is None:
                continue
            if isinstance(value, bool):
                setattr(settings, name, value)
            else:
                logging.warning(f"Ignoring {name} setting: expected true or false")

        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            'failure_markers': self.failure_markers,
            'enable_debug_logs': self.enable_debug_logs,
            'strict_mode': self.strict_mode,
        }


def _setting(data: Dict[str, Any], name: str, camel: str) -> Any:
    if name in data:
        return data[name]
    return data.get(camel)


def find_settings_file(start: Optional[Path] = None) -> Optional[Path]:
    """
    Locate the settings file to use.

    Precedence:
    1. `.testlens/settings.json` in `start` (default: cwd) or any parent
    2. `settings.json` in the user config directory
    """
    current = Path(start or Path.cwd()).resolve()
    for directory in [current] + list(current.parents):
        candidate = directory / SETTINGS_DIR_NAME / SETTINGS_FILE_NAME
        if candidate.is_file():
            return candidate

    user_settings = TESTLENS_CONFIG_DIR / SETTINGS_FILE_NAME
    if user_settings.is_file():
        return user_settings
    return None


def load_settings(start: Optional[Path] = None) -> Settings:
    """Load settings, falling back to defaults when none are found or readable."""
    path = find_settings_file(start)
    if path is None:
        return Settings()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logging.warning(f"Could not read settings from {path}: {e}")
        return Settings()

    if not isinstance(data, dict):
        logging.warning(f"Ignoring settings in {path}: expected a JSON object")
        return Settings()
    return Settings.from_dict(data)


def debug_enabled(settings: Settings) -> bool:
    return settings.enable_debug_logs or os.environ.get(DEBUG_ENV_VAR) == "1"


def configure_logging(settings: Settings) -> None:
    """Set the root log level once for command-line use."""
    level = logging.DEBUG if debug_enabled(settings) else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
