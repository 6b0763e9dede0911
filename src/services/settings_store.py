"""Durable store for periodic refresh settings"""

import copy
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from src.config import AppConfig, config
from src.models.refresh_settings import (
    DEFAULT_REFRESH_INTERVALS,
    AppSettings,
    QuietHours,
    RefreshInterval,
    RefreshSettings,
)

logger = logging.getLogger(__name__)

_MAX_REPAIR_PASSES = 5


def is_quiet_hours(now: datetime, settings: RefreshSettings) -> bool:
    """
    Check whether `now` falls inside the configured quiet hours

    A window whose start hour is after its end hour wraps past midnight
    (e.g. 23 -> 7).
    """
    quiet = settings.quiet_hours
    if not quiet.enabled:
        return False

    hour = now.hour
    if quiet.start_hour > quiet.end_hour:
        return hour >= quiet.start_hour or hour < quiet.end_hour
    return quiet.start_hour <= hour < quiet.end_hour


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _restore_default(data: dict[str, Any], defaults: dict[str, Any], loc: tuple) -> bool:
    """Reset the deepest existing key along `loc` to its default (or drop it)"""
    path = []
    node: Any = data
    for key in loc:
        if not isinstance(node, dict) or key not in node:
            break
        path.append(key)
        node = node[key]
    if not path:
        return False

    parent: Any = data
    default: Any = defaults
    for key in path[:-1]:
        parent = parent[key]
        default = default.get(key) if isinstance(default, dict) else None

    last = path[-1]
    if isinstance(default, dict) and last in default:
        parent[last] = copy.deepcopy(default[last])
    else:
        del parent[last]
    return True


def _merge_over_defaults(data: Any) -> AppSettings:
    """
    Merge a partial settings document over the defaults, field by field

    Invalid fields fall back to their defaults; the valid ones are kept.
    """
    defaults = AppSettings()
    if not isinstance(data, dict):
        logger.warning("Stored settings are not a mapping, using defaults")
        return defaults

    default_data = defaults.model_dump(mode="json")
    merged = copy.deepcopy(_deep_merge(default_data, data))
    for _ in range(_MAX_REPAIR_PASSES):
        try:
            return AppSettings.model_validate(merged)
        except ValidationError as e:
            restored = False
            for error in e.errors():
                if _restore_default(merged, default_data, error["loc"]):
                    logger.warning(
                        f"Stored setting {'.'.join(map(str, error['loc']))} is invalid "
                        f"({error['msg']}), using default"
                    )
                    restored = True
            if not restored:
                break

    logger.warning("Stored settings could not be repaired, using defaults")
    return defaults


class SettingsStore:
    """Loads, merges and persists refresh settings"""

    def __init__(self, path: str | Path | None = None, app_config: AppConfig | None = None):
        """
        Initialize settings store

        Args:
            path: Settings file path (defaults to the configured settings_path)
            app_config: Application configuration (defaults to the global config)
        """
        self.config = app_config or config
        self.path = Path(path or self.config.settings_path)
        self._settings = self._read()

    def _read(self) -> AppSettings:
        if not self.path.exists():
            logger.info(f"No settings file at {self.path}, using defaults")
            return AppSettings()

        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read settings from {self.path}: {e}")
            return AppSettings()

        if data is None:
            return AppSettings()
        return _merge_over_defaults(data)

    def _write(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                yaml.safe_dump(self._settings.model_dump(mode="json"), f, sort_keys=False)
        except OSError as e:
            logger.error(f"Failed to save settings to {self.path}: {e}")

    @property
    def settings(self) -> RefreshSettings:
        """Current refresh settings (a copy)"""
        return self._settings.periodic_refresh.model_copy(deep=True)

    @property
    def app_settings(self) -> AppSettings:
        return self._settings.model_copy(deep=True)

    def load(self) -> RefreshSettings:
        """Re-read settings from disk, merging over defaults. Never raises."""
        self._settings = self._read()
        return self.settings

    def save(self, settings: RefreshSettings) -> None:
        """Replace the refresh settings and persist them"""
        self._settings.periodic_refresh = settings.model_copy(deep=True)
        self._write()

    def update(self, **changes: Any) -> RefreshSettings:
        """
        Apply a partial update and persist immediately

        Raises:
            ValueError: If a key is unknown or the resulting settings are
                invalid (nothing is saved)
        """
        unknown = sorted(set(changes) - set(RefreshSettings.model_fields))
        if unknown:
            raise ValueError(f"Unknown refresh settings: {', '.join(unknown)}")

        current = self._settings.periodic_refresh.model_dump()
        updated = RefreshSettings.model_validate({**current, **changes})
        self._settings.periodic_refresh = updated
        self._write()
        return self.settings

    def set_enabled(self, enabled: bool) -> RefreshSettings:
        return self.update(enabled=enabled)

    def set_interval(self, interval: RefreshInterval | int) -> RefreshSettings:
        if isinstance(interval, int):
            interval = next(
                (preset for preset in DEFAULT_REFRESH_INTERVALS if preset.value == interval),
                RefreshInterval(value=interval, label=f"{interval} minutes"),
            )
        return self.update(interval=interval)

    def set_quiet_hours(
        self, start_hour: int, end_hour: int, enabled: bool = True
    ) -> RefreshSettings:
        quiet_hours = QuietHours(enabled=enabled, start_hour=start_hour, end_hour=end_hour)
        return self.update(quiet_hours=quiet_hours)

    def set_last_auto_refresh(self, timestamp: datetime) -> RefreshSettings:
        return self.update(last_auto_refresh=timestamp)

    def is_quiet_hours(self, now: datetime | None = None) -> bool:
        return is_quiet_hours(now or datetime.now(), self._settings.periodic_refresh)

    def available_intervals(self) -> list[RefreshInterval]:
        return [interval.model_copy() for interval in DEFAULT_REFRESH_INTERVALS]

    def reset_to_defaults(self) -> RefreshSettings:
        self._settings = AppSettings()
        self._write()
        return self.settings

    def export_settings(self) -> str:
        """Serialize the full settings document as indented JSON"""
        return self._settings.model_dump_json(indent=2)

    def import_settings(self, settings_json: str) -> bool:
        """
        Replace settings from a JSON document, merged over defaults

        Returns:
            bool: False if the document could not be parsed (settings unchanged)
        """
        try:
            data = json.loads(settings_json)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to import settings: {e}")
            return False

        if not isinstance(data, dict):
            logger.error("Failed to import settings: expected a JSON object")
            return False

        merged = _deep_merge(AppSettings().model_dump(mode="json"), data)
        try:
            self._settings = AppSettings.model_validate(merged)
        except ValidationError as e:
            logger.error(f"Failed to import settings: {e}")
            return False

        self._write()
        return True
