from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from autodir.app.direction import (
    LTR_SCRIPTS,
    RTL_SCRIPTS,
    SCRIPT_RANGES,
    Direction,
    DirectionDetector,
)

GLOBAL_CONFIG = Path.home() / ".autodir_config.json"

logger = logging.getLogger(__name__)


def init_settings() -> None:
    GLOBAL_CONFIG.parent.mkdir(parents=True, exist_ok=True)


def _read_global_config() -> dict:
    """Return the parsed global config, or an empty dict on error/missing."""
    if not GLOBAL_CONFIG.exists():
        return {}
    try:
        payload = json.loads(GLOBAL_CONFIG.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _update_global_config(updates: dict) -> None:
    """Merge updates into global config file."""
    existing = _read_global_config()
    existing.update(updates)
    GLOBAL_CONFIG.write_text(json.dumps(existing, indent=2, ensure_ascii=False), encoding="utf-8")


def load_default_direction() -> Direction:
    """Direction for newly opened notes: ltr | rtl | auto (default: auto)."""
    payload = _read_global_config()
    return Direction.parse(payload.get("default_direction"), Direction.AUTO)


def save_default_direction(direction: Direction | str) -> None:
    value = Direction.parse(direction, Direction.AUTO)
    _update_global_config({"default_direction": value.value})


def load_fallback_direction() -> Direction:
    """Direction given to text with no strong characters before any decision (default: ltr)."""
    payload = _read_global_config()
    value = Direction.parse(payload.get("fallback_direction"), Direction.LTR)
    if value is Direction.AUTO:
        logger.warning("fallback_direction cannot be 'auto'; using ltr")
        return Direction.LTR
    return value


def save_fallback_direction(direction: Direction | str) -> None:
    value = Direction.parse(direction, Direction.LTR)
    if value is Direction.AUTO:
        value = Direction.LTR
    _update_global_config({"fallback_direction": value.value})


def _load_scripts(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    payload = _read_global_config()
    names = payload.get(key)
    if not isinstance(names, list):
        return default
    known: list[str] = []
    for name in names:
        if isinstance(name, str) and name in SCRIPT_RANGES:
            known.append(name)
        else:
            logger.warning("Ignoring unknown script %r in %s", name, key)
    return tuple(known)


def load_rtl_scripts() -> tuple[str, ...]:
    """Scripts that make a line right-to-left (default: Arabic, Hebrew, Syriac, Thaana)."""
    return _load_scripts("rtl_scripts", RTL_SCRIPTS)


def load_ltr_scripts() -> tuple[str, ...]:
    """Scripts that make a line left-to-right (default: every other known script)."""
    return _load_scripts("ltr_scripts", LTR_SCRIPTS)


def save_script_groups(rtl_scripts: Optional[list[str]], ltr_scripts: Optional[list[str]]) -> None:
    """Persist script group overrides; None restores the built-in group."""
    _update_global_config({"rtl_scripts": rtl_scripts, "ltr_scripts": ltr_scripts})


def load_direction_detector() -> DirectionDetector:
    return DirectionDetector(load_rtl_scripts(), load_ltr_scripts())


def load_preview_dir_attribute() -> bool:
    """Whether the Qt preview mirrors direction classes into dir attributes (default: True)."""
    payload = _read_global_config()
    val = payload.get("preview_dir_attribute")
    if val is None:
        return True
    return bool(val)


def save_preview_dir_attribute(enabled: bool) -> None:
    _update_global_config({"preview_dir_attribute": bool(enabled)})


def load_last_file() -> Optional[str]:
    payload = _read_global_config()
    last = payload.get("last_file")
    return last if isinstance(last, str) else None


def save_last_file(path: str) -> None:
    _update_global_config({"last_file": path})


def load_remember_per_file() -> bool:
    """Whether each note reopens with the document direction it was left in (default: True)."""
    payload = _read_global_config()
    val = payload.get("remember_per_file")
    if val is None:
        return True
    return bool(val)


def save_remember_per_file(enabled: bool) -> None:
    _update_global_config({"remember_per_file": bool(enabled)})


def load_file_directions() -> dict[str, Direction]:
    payload = _read_global_config()
    stored = payload.get("file_directions")
    if not isinstance(stored, dict):
        return {}
    directions: dict[str, Direction] = {}
    for path, value in stored.items():
        direction = Direction.parse(value)
        if direction is None:
            logger.warning("Ignoring stored direction %r for %s", value, path)
            continue
        directions[path] = direction
    return directions


def _save_file_directions(directions: dict[str, Direction]) -> None:
    _update_global_config({"file_directions": {path: d.value for path, d in directions.items()}})


def load_file_direction(path: str) -> Optional[Direction]:
    return load_file_directions().get(path)


def save_file_direction(path: str, direction: Direction | str) -> None:
    directions = load_file_directions()
    directions[path] = Direction.parse(direction, Direction.AUTO)
    _save_file_directions(directions)


def forget_file_direction(path: str) -> None:
    """Drop the stored direction of a deleted note."""
    directions = load_file_directions()
    if directions.pop(path, None) is not None:
        _save_file_directions(directions)


def rename_file_direction(old_path: str, new_path: str) -> None:
    """Move the stored direction of a note to its new path."""
    directions = load_file_directions()
    direction = directions.pop(old_path, None)
    if direction is None:
        return
    directions[new_path] = direction
    _save_file_directions(directions)
