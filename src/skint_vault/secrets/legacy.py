"""Import API keys from the shell-script era ``secrets.env`` file.

The old installer kept keys in ``<data dir>/secrets.env`` as plain
``KEY=value`` lines. This module reads that file and maps its variables
onto provider names so the keys can be moved into a real backend.
"""

from __future__ import annotations

import logging
import os
import pathlib
import re
import stat

from skint_vault.secrets.errors import SymlinkRejectedError

logger = logging.getLogger(__name__)

LEGACY_SECRETS_FILENAME = "secrets.env"
# Files the old installer left behind next to secrets.env
LEGACY_FILES = (LEGACY_SECRETS_FILENAME, "banner", "skint-full.sh")

# Key variable -> provider name for the built-in hosted providers
KNOWN_KEY_VARS = {
    "ZAI_API_KEY": "zai",
    "MINIMAX_API_KEY": "minimax",
    "KIMI_API_KEY": "kimi",
    "MOONSHOT_API_KEY": "moonshot",
    "DEEPSEEK_API_KEY": "deepseek",
}
OPENROUTER_KEY_VAR = "OPENROUTER_API_KEY"

_CUSTOM_KEY_RE = re.compile(r"^([A-Z_]+)_API_KEY$")

_SHELL_UNESCAPES = {
    "\\": "\\",
    '"': '"',
    "'": "'",
    "n": "\n",
    "t": "\t",
    "$": "$",
}


def _unescape_shell(value: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(value):
        char = value[i]
        if char == "\\" and i + 1 < len(value) and value[i + 1] in _SHELL_UNESCAPES:
            out.append(_SHELL_UNESCAPES[value[i + 1]])
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


def load_legacy_secrets(path: pathlib.Path) -> dict[str, str]:
    """Parse a legacy ``secrets.env`` file into a variable -> value dict.

    Blank lines, comments and lines without ``=`` are skipped. Surrounding
    quotes are stripped and common shell escapes undone.

    Raises
    ------
    FileNotFoundError
        The file does not exist.
    SymlinkRejectedError
        The path is a symbolic link.
    """
    info = os.lstat(path)
    if stat.S_ISLNK(info.st_mode):
        raise SymlinkRejectedError("Legacy secrets file is a symlink; refusing to read it")

    variables: dict[str, str] = {}
    with open(path, encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                continue
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export ") :].strip()
            value = value.strip().strip("\"'")
            variables[key] = _unescape_shell(value)
    return variables


def legacy_provider_keys(variables: dict[str, str]) -> dict[str, str]:
    """Map legacy variables onto provider name -> API key.

    Known providers come from :data:`KNOWN_KEY_VARS`; ``OPENROUTER_API_KEY``
    becomes ``openrouter``; any other ``<PREFIX>_API_KEY`` is taken as a
    custom provider when a ``SKINT_<PREFIX>_API_KEY_BASE_URL`` entry exists.
    Empty values are dropped.
    """
    keys: dict[str, str] = {}
    for var, provider in KNOWN_KEY_VARS.items():
        if variables.get(var):
            keys[provider] = variables[var]

    if variables.get(OPENROUTER_KEY_VAR):
        keys["openrouter"] = variables[OPENROUTER_KEY_VAR]

    for var, value in variables.items():
        if var in KNOWN_KEY_VARS or var == OPENROUTER_KEY_VAR or not value:
            continue
        match = _CUSTOM_KEY_RE.match(var)
        if match is None:
            continue
        prefix = match.group(1)
        if f"SKINT_{prefix}_API_KEY_BASE_URL" not in variables:
            continue
        keys[prefix.lower().replace("_", "-")] = value
    return keys


def cleanup_legacy_files(data_dir: pathlib.Path) -> list[pathlib.Path]:
    """Delete the old installer's files and return the ones removed."""
    removed = []
    for filename in LEGACY_FILES:
        path = data_dir / filename
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        removed.append(path)
        logger.info("Removed legacy file %s", path)
    return removed
