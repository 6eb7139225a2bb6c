"""Text codec for the secret set held inside the encrypted blob.

One ``name=value`` pair per line, names sorted. Backslash, newline and
``=`` are escaped as ``\\\\``, ``\\n`` and ``\\=`` in both names and values,
so the first unescaped ``=`` on a line always separates the two. On parse,
blank lines and ``#`` comments are ignored and lines without a separator
are skipped, so one damaged line never costs the other secrets.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

_ESCAPES = {"\\": "\\\\", "\n": "\\n", "=": "\\="}
_UNESCAPES = {"\\": "\\", "n": "\n", "=": "=", "#": "#"}


def escape(text: str) -> str:
    """Escape backslashes, newlines and equals signs."""
    return "".join(_ESCAPES.get(char, char) for char in text)


def _escape_name(name: str) -> str:
    escaped = escape(name)
    # a bare leading "#" would read back as a comment
    if escaped.startswith("#"):
        return "\\" + escaped
    return escaped


def unescape(text: str) -> str:
    """Undo :func:`escape`. Unknown escape sequences are kept as written."""
    out: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            following = text[i + 1]
            out.append(_UNESCAPES.get(following, char + following))
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


def _split_line(line: str) -> tuple[str, str] | None:
    """Split at the first unescaped ``=``; ``None`` when there is none."""
    i = 0
    while i < len(line):
        char = line[i]
        if char == "\\":
            i += 2
            continue
        if char == "=":
            return line[:i], line[i + 1 :]
        i += 1
    return None


def serialize(secrets: dict[str, str]) -> bytes:
    """Encode a secret set as deterministic UTF-8 text."""
    lines = [f"{_escape_name(name)}={escape(secrets[name])}" for name in sorted(secrets)]
    return "\n".join(lines).encode("utf-8")


def parse(data: bytes) -> dict[str, str]:
    """Decode text produced by :func:`serialize`.

    Raises ``UnicodeDecodeError`` if *data* is not UTF-8.
    """
    secrets: dict[str, str] = {}
    for lineno, line in enumerate(data.decode("utf-8").split("\n"), start=1):
        if not line.strip() or line.startswith("#"):
            continue
        parts = _split_line(line)
        if parts is None:
            logger.debug("Skipping unparseable secrets line %d", lineno)
            continue
        name, value = parts
        secrets[unescape(name)] = unescape(value)
    return secrets
