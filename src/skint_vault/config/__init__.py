"""Configuration loader for skint-vault.

Loads settings from a YAML file with built-in defaults. Supports environment
variable overrides using the SKINT_ prefix with double-underscore nesting
(e.g., SKINT_VAULT__BACKEND=file).
"""

from __future__ import annotations

import os
import pathlib
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

APP_NAME = "skint"


# ---------------------------------------------------------------------------
# XDG directories
# ---------------------------------------------------------------------------

def _xdg_dir(env_var: str, fallback: tuple[str, ...]) -> pathlib.Path:
    xdg = os.environ.get(env_var)
    if xdg:
        return pathlib.Path(xdg) / APP_NAME
    return pathlib.Path.home().joinpath(*fallback, APP_NAME)


def get_config_dir() -> pathlib.Path:
    """Return ``$XDG_CONFIG_HOME/skint`` or ``~/.config/skint``."""
    return _xdg_dir("XDG_CONFIG_HOME", (".config",))


def get_data_dir() -> pathlib.Path:
    """Return ``$XDG_DATA_HOME/skint`` or ``~/.local/share/skint``."""
    return _xdg_dir("XDG_DATA_HOME", (".local", "share"))


# ---------------------------------------------------------------------------
# Config sub-models
# ---------------------------------------------------------------------------

class VaultConfig(BaseModel):
    data_dir: str | None = None
    backend: Literal["auto", "keyring", "file"] = "auto"
    keyring_service: str = "skint"


class LoggingConfig(BaseModel):
    level: str = "WARNING"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseModel):
    vault: VaultConfig = Field(default_factory=VaultConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def resolve_data_dir(self) -> pathlib.Path:
        """Directory holding the encrypted secrets file."""
        if self.vault.data_dir:
            return pathlib.Path(self.vault.data_dir).expanduser()
        return get_data_dir()


# ---------------------------------------------------------------------------
# Deep merge helper
# ---------------------------------------------------------------------------

def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into *base*, returning a new dict."""
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "SKINT_"


def _collect_env_overrides() -> dict[str, Any]:
    """Collect SKINT_* env vars and build a nested dict.

    Double-underscore separates nesting levels. Variables without a
    section (e.g. ``SKINT_DEBUG``) belong to the wider tool and are ignored.
    Example: SKINT_VAULT__BACKEND=file
    becomes  {"vault": {"backend": "file"}}
    """
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        parts = key[len(_ENV_PREFIX) :].lower().split("__")
        if len(parts) < 2 or parts[0] not in Settings.model_fields:
            continue
        current = overrides
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value
    return overrides


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def default_config_path() -> pathlib.Path:
    return get_config_dir() / "vault.yaml"


def load_settings(
    config_path: pathlib.Path | None = None,
) -> Settings:
    """Load settings with layered precedence: defaults < file < env vars.

    Parameters
    ----------
    config_path:
        Path to a YAML config file. If ``None``, ``vault.yaml`` in the
        config directory is used when it exists.
    """
    base: dict[str, Any] = {}

    path = config_path if config_path is not None else default_config_path()
    if path.exists():
        with open(path) as fh:
            file_data = yaml.safe_load(fh)
        if isinstance(file_data, dict):
            base = _deep_merge(base, file_data)

    env_overrides = _collect_env_overrides()
    if env_overrides:
        base = _deep_merge(base, env_overrides)

    return Settings(**base)
