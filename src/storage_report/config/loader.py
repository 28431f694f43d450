from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

_LOGGER = logging.getLogger(__name__)


def load_settings(path: str | Path) -> Dict[str, Any]:
    """Read the JSON settings file; a missing file means all defaults."""
    settings_path = Path(path)
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _LOGGER.warning(
            "Settings file %s not found; using defaults",
            settings_path,
            extra={"event": "settings_missing", "path": str(settings_path)},
        )
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{settings_path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{settings_path} must contain a JSON object")
    _LOGGER.info(
        "settings_loaded",
        extra={"event": "settings_loaded", "path": str(settings_path), "keys": sorted(data)},
    )
    return data
