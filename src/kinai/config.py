"""Configuration management for kinai.

Loads a TOML config file (storage location, AI provider, export directory)
over built-in defaults, and can write a starter config.
"""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path

DEFAULT_CONFIG_PATH = "kinai.toml"

DEFAULT_CONFIG_TEMPLATE = """\
# kinai configuration

[storage]
# SQLite file holding the patient and session collections
db_path = "kinai.db"

[ai]
# gemini | mock
provider = "gemini"
model = "gemini-3-flash-preview"
# Environment variable holding the API key
api_key_env = "GEMINI_API_KEY"
timeout_seconds = 30

[export]
# Directory for CSV and PDF exports
output_dir = "."
"""


def _default_config() -> dict:
    """Return default configuration."""
    return {
        "storage": {
            "db_path": "kinai.db",
        },
        "ai": {
            "provider": "gemini",
            "model": "gemini-3-flash-preview",
            "api_key_env": "GEMINI_API_KEY",
            "timeout_seconds": 30,
        },
        "export": {
            "output_dir": ".",
        },
    }


def load_config(config_path: str = DEFAULT_CONFIG_PATH, warn_missing: bool = True) -> dict:
    """Load configuration from a TOML file.

    Each known section of the file is merged over the defaults, so a partial
    file keeps defaults for everything it leaves out. Falls back to defaults
    if the config file doesn't exist.
    """
    config = _default_config()
    path = Path(config_path)
    if not path.exists():
        if warn_missing:
            print(
                f"Warning: Config file '{config_path}' not found, using defaults. "
                f"Run 'python -m kinai init-config' to generate one.",
                file=sys.stderr,
            )
        return config

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    for section, defaults in config.items():
        if isinstance(raw.get(section), dict):
            defaults.update(raw[section])

    return config


def generate_config(config_path: str = DEFAULT_CONFIG_PATH) -> str:
    """Write the default config template. Returns the path of the written file."""
    Path(config_path).write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    return config_path
