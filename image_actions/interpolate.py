"""Placeholder expansion for user command templates and built-in actions.

Two flat grammars, each expanded in a single left-to-right pass:

``interpolate_line`` (user file actions)
    ``%f`` current image as a quoted file name, plus, in extended mode,
    ``%N %x %y %w %h %X %Y %W %H %C %T %B %A %S %M %%``. Leading ``>``
    directives may force RGB (``>RGB``), enable extended mode (``>%``) or pick
    an output format (``>png``, ``>jpg``...).

``interpolate_action`` (built-in action templates)
    ``((src)) ((srcmask)) ((dest)) ((delay)) ((w)) ((h))``.

The file behind ``%f`` is resolved at most once per call, however many times
it appears.
"""

from __future__ import annotations

from dataclasses import dataclass

from image_actions.document import DocumentState
from image_actions.encoder import ArtifactProducer, VipsImageSaver
from image_actions.escaper import EscapePolicy, default_policy, escape_filename
from image_actions.formats import RGB, FileFormat, find_format, save_mask
from image_actions.logger import get_logger
from image_actions.tempfiles import TempFileManager

_logger = get_logger("interpolate")

PLACEHOLDERS = "%fNxywhXYWHCTBASM"
_BLANKS = " \t"


@dataclass(frozen=True)
class LineDirectives:
    rgb: bool
    fmt: FileFormat | None
    extend: bool
    body_start: int


@dataclass(frozen=True)
class ActionSettings:
    """Values for the built-in action templates."""

    src: str = ""
    dest: str = ""
    delay: int = 0  # 1/100 s
    width: int = 0
    height: int = 0


def parse_directives(pattern: str, document: DocumentState, command: bool = True) -> LineDirectives:
    """Read the leading ``>token`` directives of a command template.

    Unknown tokens are ignored; the first word not starting with ``>`` ends
    the directives and begins the template body.
    """
    rgb = document.bpp == 3
    fmt: FileFormat | None = None
    extend = not command
    pos = 0
    n = len(pattern)
    while command:
        while pos < n and pattern[pos] in _BLANKS:
            pos += 1
        if pos >= n or pattern[pos] != ">":
            break
        pos += 1
        end = pos
        while end < n and pattern[end] not in ">" + _BLANKS:
            end += 1
        token = pattern[pos:end]
        if token.upper() == "RGB":
            rgb = True
        elif token == "%":
            extend = True
        elif token:
            found = find_format(token)
            if found is None:
                _logger.debug("unknown directive ignored: >%s", token)
            else:
                fmt = found
        pos = end
    return LineDirectives(rgb=rgb, fmt=fmt, extend=extend, body_start=pos)


def reconcile_format(fmt: FileFormat | None, rgb: bool, document: DocumentState) -> tuple[FileFormat | None, bool]:
    """Drop or adapt a requested format the requested colour mode cannot use."""
    if fmt is None:
        return None, rgb
    if rgb and not fmt.flags & RGB:
        return None, rgb
    if fmt.flags & save_mask(document):
        return fmt, rgb
    if fmt.flags & RGB:
        return fmt, True
    return None, rgb


def _numbers(document: DocumentState) -> dict[str, int]:
    x, y, w, h = document.selection or (0, 0, 0, 0)
    cx, cy = document.cursor
    return {
        "x": x,
        "y": y,
        "w": w,
        "h": h,
        "X": cx,
        "Y": cy,
        "W": document.width,
        "H": document.height,
        "C": document.colors,
        "T": document.transparent_index,
        "B": document.bpp,
        "A": int(document.has_alpha),
        "S": int(document.has_selection_mask),
        "M": int(document.has_mask),
    }


def interpolate_line(
    pattern: str,
    document: DocumentState,
    temp_files: TempFileManager | None = None,
    producer: ArtifactProducer | None = None,
    command: bool = True,
) -> str:
    """Expand a user command template against the current document.

    ``command=False`` is info mode: every placeholder is active, but ``%f``
    expands to nothing and no file is written. A template without ``%f``
    that is not extended is returned as is (the same object).

    Raises the TempFileManager/producer errors when ``%f`` cannot be resolved.
    """
    d = parse_directives(pattern, document, command)
    if not d.extend and "%f" not in pattern:
        return pattern
    fmt, rgb = reconcile_format(d.fmt, d.rgb, document)

    numbers = _numbers(document)
    fname: str | None = None
    out: list[str] = []
    body = pattern[d.body_start :]
    n = len(body)
    i = 0
    while i < n:
        c = body[i]
        i += 1
        code = body[i] if c == "%" and i < n else ""
        if not code or code not in PLACEHOLDERS or not (d.extend or code == "f"):
            out.append(c)
            continue
        i += 1
        if code == "%":
            out.append("%")
        elif code == "f":
            # No temp files in info mode
            if not command:
                continue
            if fname is None:
                if temp_files is None:
                    raise ValueError("expanding %f needs a TempFileManager")
                fname = temp_files.recall_or_create(document, fmt, rgb, producer or VipsImageSaver())
            out.append(escape_filename(fname))
        elif code == "N":
            if document.filename:
                out.append(document.filename)
        else:
            out.append(str(numbers[code]))
    return "".join(out)


def _action_value(name: str, settings: ActionSettings, policy: EscapePolicy) -> str:
    if name == "src":
        return escape_filename(settings.src, None, policy)
    if name == "srcmask":
        sep = settings.src.rfind(policy.dir_sep)
        return escape_filename(settings.src, sep if sep >= 0 else 0, policy)
    if name == "dest":
        return escape_filename(settings.dest, None, policy)
    if name == "delay":
        return str(settings.delay)
    if name == "w":
        return f"-w {settings.width}" if settings.width else ""
    if name == "h":
        return f"-h {settings.height}" if settings.height else ""
    # Unknown vars are skipped
    return ""


def interpolate_action(pattern: str, settings: ActionSettings, policy: EscapePolicy | None = None) -> str:
    """Expand ``((var))`` references; everything else is copied verbatim."""
    policy = policy or default_policy()
    out: list[str] = []
    n = len(pattern)
    i = 0
    while i < n:
        c = pattern[i]
        if c == "(" and pattern.startswith("(", i + 1) and not pattern.startswith("(", i + 2):
            end = pattern.find("))", i + 2)
            if end >= 0:
                name = pattern[i + 2 : end]
                if name:
                    out.append(_action_value(name, settings, policy))
                i = end + 2
                continue
        out.append(c)
        i += 1
    return "".join(out)
