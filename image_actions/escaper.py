"""Shell-safe quoting of file names embedded into command templates.

Every character is classified once, in a precomputed per-shell table:

- QUOTE: must appear inside quotes
- WILDCARD: ``*``/``?``; quoted before the wildcard boundary, left bare after it
- UNQUOTE: cannot appear inside the quote style at all; the quote is closed,
  the character emitted (usually escaped) and quoting resumed on demand
- ESCAPE: needs the shell's escape character in front of it

POSIX shells use single quotes with ``\\`` escapes; ``cmd.exe`` uses double
quotes with ``%`` doubled.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass

QUOTE = 1
WILDCARD = 2
UNQUOTE = 4
ESCAPE = 8

# Quote most anything at all non-alphanumeric
_SPECIAL = " !\"#$%&'()*+,:;<=>?@[]^`{|}~"


def _build_table(windows: bool) -> tuple[int, ...]:
    what = [0] * 256
    for i in range(0x20):
        what[i] = QUOTE
    for ch in _SPECIAL:
        what[ord(ch)] = QUOTE
    what[ord("?")] = what[ord("*")] = WILDCARD
    if windows:
        # Delayed expansion ('!' and '^') cannot be detected, so it is not handled
        what[ord("%")] |= ESCAPE
    else:
        what[ord("\\")] = QUOTE
        what[ord("'")] = UNQUOTE | ESCAPE
    return tuple(what)


@dataclass(frozen=True)
class EscapePolicy:
    name: str
    quote: str
    escape: str
    dir_sep: str
    table: tuple[int, ...]

    def flags(self, ch: str) -> int:
        code = ord(ch)
        return self.table[code] if code < len(self.table) else 0


POSIX_POLICY = EscapePolicy("posix", "'", "\\", "/", _build_table(windows=False))
WINDOWS_POLICY = EscapePolicy("windows", '"', "%", "\\", _build_table(windows=True))


def default_policy() -> EscapePolicy:
    return WINDOWS_POLICY if os.name == "nt" else POSIX_POLICY


def _with_wildcard(flags: int, index: int, tail: int) -> int:
    if flags & WILDCARD:
        flags |= UNQUOTE if index >= tail else QUOTE
    return flags


def _pieces(name: str, tail: int, policy: EscapePolicy) -> Iterator[str]:
    if not name:
        yield policy.quote * 2
        return

    # Opening quote goes first if the first notable character wants quoting
    first = 0
    for i, ch in enumerate(name):
        first = policy.flags(ch) & (QUOTE | WILDCARD | UNQUOTE)
        if first:
            first = _with_wildcard(first, i, tail)
            break

    toggle = QUOTE  # flag bit that flips the quote state next
    if first & QUOTE:
        yield policy.quote
        toggle = UNQUOTE

    # Never let the name be read as an option
    if name[0] == "-":
        yield "." + policy.dir_sep

    for i, ch in enumerate(name):
        v = _with_wildcard(policy.flags(ch), i, tail)
        if v & toggle:
            yield policy.quote
            toggle ^= QUOTE | UNQUOTE
        if v & ESCAPE:
            yield policy.escape
        yield ch

    if toggle & UNQUOTE:
        yield policy.quote


def _clamp_tail(name: str, tail: int | None) -> int:
    if tail is None or tail < 0 or tail > len(name):
        return len(name)
    return tail


def escape_filename(name: str, tail: int | None = None, policy: EscapePolicy | None = None) -> str:
    """Quote ``name`` so the target shell reads it back verbatim.

    ``tail`` is the wildcard boundary: ``*``/``?`` at or after it stay outside
    quotes so the shell expands them. ``None`` (or any out-of-range value)
    quotes everything.
    """
    policy = policy or default_policy()
    return "".join(_pieces(name, _clamp_tail(name, tail), policy))


def escaped_length(name: str, tail: int | None = None, policy: EscapePolicy | None = None) -> int:
    """Length :func:`escape_filename` would produce, without building it."""
    policy = policy or default_policy()
    return sum(len(p) for p in _pieces(name, _clamp_tail(name, tail), policy))
