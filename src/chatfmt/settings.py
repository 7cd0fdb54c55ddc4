"""Persistent CLI preferences in a JSON file.

The file lives at XDG_CONFIG_HOME/chatfmt/settings.json and holds a flat
object. Only the CLI reads it: the formatting core takes no
configuration, and command-line flags always win over stored values.

Import as: import chatfmt.settings
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderSettings:
    code_theme: str = "monokai"
    show_reasoning: bool = False
    default_role: str = "assistant"


def get_config_path() -> Path:
    """XDG_CONFIG_HOME (default ~/.config) / chatfmt / settings.json."""
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    return Path(base, "chatfmt", "settings.json")


def load_settings() -> dict:
    """Stored settings, or {} when the file is missing, unreadable or not an object."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("ignoring unreadable settings file %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_settings(data: dict) -> None:
    """Replace the settings file atomically (temp file in the same dir, then rename)."""
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, suffix=".tmp", delete=False
    ) as tmp:
        json.dump(data, tmp, indent=2, sort_keys=True)
        tmp.write("\n")
    try:
        os.replace(tmp.name, path)
    except OSError:
        Path(tmp.name).unlink(missing_ok=True)
        raise


def load_setting(key: str, default=None):
    return load_settings().get(key, default)


def save_setting(key: str, value) -> None:
    """Merge one key into the stored settings."""
    save_settings({**load_settings(), key: value})


def load_render_settings() -> RenderSettings:
    """Renderer preferences; absent or mistyped keys fall back to defaults."""
    stored = load_settings()
    defaults = RenderSettings()
    values = {}
    for field in fields(RenderSettings):
        fallback = getattr(defaults, field.name)
        value = stored.get(field.name, fallback)
        if type(value) is not type(fallback):
            logger.warning(
                "setting %s has wrong type %s; using default %r",
                field.name,
                type(value).__name__,
                fallback,
            )
            value = fallback
        values[field.name] = value
    return RenderSettings(**values)
