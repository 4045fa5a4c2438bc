"""Path normalization utilities.

- Use absolute paths when handing file names to external programs.
- Derive short, collision-friendly name stubs for temp artifacts.

Keep this module free of Qt dependencies.
"""

from __future__ import annotations

import os
from pathlib import Path

_DRIVE_PREFIX_LEN = 2


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def abs_path(path: str | Path) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        # strict=False avoids exceptions for non-existent paths.
        return p.resolve(strict=False)
    except (OSError, RuntimeError):
        return p.absolute()


def abs_path_str(path: str | Path) -> str:
    """Absolute, OS-native path string (Windows uses backslashes)."""
    return _normalize_drive_letter(str(abs_path(path)))


def abs_dir_str(path: str | Path) -> str:
    """Absolute directory path; an existing file maps to its parent."""
    p = abs_path(path)
    if p.exists() and not p.is_dir():
        p = p.parent
    return _normalize_drive_letter(str(p))


def name_stub(path: str | None, default: str = "tmp") -> str:
    """Basename without extension, or ``default`` when nothing usable remains.

    A name that is only an extension (".bashrc") yields the default.
    """
    if not path:
        return default
    base = os.path.basename(path)
    dot = base.rfind(".")
    if dot == 0:
        return default
    stem = base[:dot] if dot > 0 else base
    return stem or default
