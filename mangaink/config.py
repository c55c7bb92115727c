"""
Editor configuration.

Defaults live on ``EditorConfig``; ``load_config`` layers ``settings.json``
from the config directory and ``MANGAINK_*`` environment variables on top.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from mangaink.utils.resource_loader import get_config_dir

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"
ENV_PREFIX = "MANGAINK_"


@dataclass(frozen=True)
class EditorConfig:
    """
    Tunables for the editor engine.
    """

    autosave_debounce_ms: int = 700
    history_coalesce_ms: int = 650
    history_max_depth: int = 200
    min_resize_px: float = 24.0
    snap_threshold_px: float = 8.0
    nudge_small: int = 1
    nudge_large: int = 10
    zoom_step: float = 0.1
    zoom_min: float = 0.25
    zoom_max: float = 4.0
    min_font_size: int = 8
    max_font_size: int = 220
    debug: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "EditorConfig":
        """
        Return a copy with known keys replaced; values are coerced to the
        field's type and unknown keys are ignored with a warning.
        """
        types = {f.name: type(getattr(self, f.name)) for f in fields(self)}
        changes = {}
        for key, value in overrides.items():
            if key not in types:
                logger.warning("Ignoring unknown setting %r", key)
                continue
            try:
                changes[key] = _coerce(types[key], value)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid value %r for setting %r", value, key)
        return replace(self, **changes)


def _coerce(kind: type, value: Any) -> Any:
    if kind is bool:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    return kind(value)


def load_config(
    config_dir: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> EditorConfig:
    """
    Build the effective configuration.

    Args:
        config_dir: Directory holding ``settings.json``; defaults to the
            per-user config directory
        environ: Environment to read ``MANGAINK_*`` overrides from

    Returns:
        Defaults, then file settings, then environment overrides
    """
    config = EditorConfig()
    environ = os.environ if environ is None else environ

    path = Path(config_dir or get_config_dir()) / SETTINGS_FILE
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                config = config.with_overrides(data)
            else:
                logger.warning("Settings file %s is not a JSON object", path)
        except (OSError, ValueError) as e:
            logger.warning("Could not read settings from %s: %s", path, e)

    env_overrides = {}
    for f in fields(EditorConfig):
        value = environ.get(ENV_PREFIX + f.name.upper())
        if value is not None:
            env_overrides[f.name] = value
    if env_overrides:
        config = config.with_overrides(env_overrides)
    return config
