"""
Settings for copyhelper.

Tunables (thresholds, kernel sizes, weights, file names) live in
copyhelper.toml, which is required and has no built-in defaults. Paths
that differ per machine can be overridden from the environment or a .env
file:

    COPYHELPER_CONFIG_PATH   alternative TOML file
    COPYHELPER_DATA_DIR      index file and logs
    COPYHELPER_MODELS_DIR    encoder models and tokenizer.json
"""

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(
    os.environ.get("COPYHELPER_CONFIG_PATH")
    or Path(__file__).resolve().parent.parent / "copyhelper.toml"
)

if not _CONFIG_PATH.is_file():
    raise RuntimeError(f"copyhelper settings file not found: {_CONFIG_PATH}")

with open(_CONFIG_PATH, "rb") as _fh:
    _SETTINGS = tomllib.load(_fh)


def get(*keys: str) -> Any:
    """Look up a nested setting, e.g. get("segmentation", "text", "min_area").

    A missing section or key is a configuration bug and raises RuntimeError.
    """
    node = _SETTINGS
    for depth, key in enumerate(keys):
        if not isinstance(node, dict) or key not in node:
            dotted = ".".join(keys[: depth + 1])
            raise RuntimeError(f"{_CONFIG_PATH.name} has no setting '{dotted}'")
        node = node[key]
    return node


def get_env(name: str) -> Optional[str]:
    """Environment override, or None when unset or blank."""
    value = os.environ.get(name, "").strip()
    return value or None


def require_env(name: str) -> str:
    """Environment value that must be present. Raises RuntimeError if unset or empty."""
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(
            f"Required environment variable '{name}' is not set. "
            f"Add it to your .env file."
        )
    return value


def _resolve(configured: str) -> Path:
    path = Path(configured).expanduser()
    if not path.is_absolute():
        # relative paths are relative to the settings file, not the cwd
        path = _CONFIG_PATH.parent / path
    return path


def data_dir() -> Path:
    """Directory for the index file and logs. Created on first use."""
    path = _resolve(get_env("COPYHELPER_DATA_DIR") or get("app", "data_dir"))
    path.mkdir(parents=True, exist_ok=True)
    return path


def models_dir() -> Path:
    """Directory holding the two TorchScript encoders and tokenizer.json."""
    return _resolve(get_env("COPYHELPER_MODELS_DIR") or get("models", "clip_dir"))
