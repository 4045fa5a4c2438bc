"""Temp artifacts handed to external programs.

A TempFileManager owns one private temp directory for its whole lifetime and
every file created in it. Files are never removed individually: they stay
around (external viewers may still be reading them) until ``shutdown()``.

Records form one list. The newest group's first record is the *anchor*; new
records go right after it, so the current group is always a contiguous run
starting at the anchor. A new anchor is started whenever the document's
revision changes.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass

from image_actions.document import DocumentState
from image_actions.encoder import ArtifactProducer
from image_actions.errors import ArtifactWriteError, NameExhaustedError, NoTempDirError
from image_actions.formats import PNG, RGB, FileFormat, detect_file_format, format_by_ext, save_mask
from image_actions.logger import get_logger
from image_actions.path_utils import name_stub

_logger = get_logger("tempfiles")

PATH_MAX = 4096
SCAN_WINDOW = 256
DEFAULT_STUB = "tmp"
TEMP_DIR_PREFIX = "imgact"
_TEMP_ENV_VARS = ("TMPDIR", "TMP", "TEMP")


@dataclass(frozen=True)
class TempFile:
    name: str
    fmt: FileFormat
    rgb: bool
    anchor: int  # serial of the group's anchor record
    serial: int


class TempFileManager:
    def __init__(self, environ: Mapping[str, str] | None = None, windows: bool | None = None) -> None:
        self._environ = os.environ if environ is None else environ
        self._windows = (os.name == "nt") if windows is None else windows
        self._temp_dir: str | None = None
        self._records: list[TempFile] = []
        self._anchor: TempFile | None = None
        self._anchor_revision: int | None = None
        self._last_index = 0
        self._serial = 0

    # ---- lifecycle ----
    def open(self) -> TempFileManager:
        return self

    def close(self) -> None:
        self.shutdown()

    def __enter__(self) -> TempFileManager:
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def temp_dir(self) -> str | None:
        return self._temp_dir

    @property
    def records(self) -> tuple[TempFile, ...]:
        return tuple(self._records)

    # ---- directory ----
    def _default_base(self) -> str:
        return "\\" if self._windows else "/tmp"

    def temp_base(self) -> str:
        """Parent directory for the private temp dir, from the environment."""
        base = ""
        for key in _TEMP_ENV_VARS:
            base = self._environ.get(key) or ""
            if base:
                break
        if not base or len(base) >= PATH_MAX:
            base = self._default_base()
        return base

    def ensure_temp_dir(self) -> str:
        """Create the private temp dir on first use; reuse it afterwards."""
        if self._temp_dir:
            return self._temp_dir
        base = self.temp_base()
        try:
            self._temp_dir = tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX, dir=base)
        except OSError as e:
            _logger.warning("temp dir creation failed in %s: %s", base, e)
            raise NoTempDirError(f"cannot create temp directory in {base}: {e}", base) from e
        _logger.debug("temp dir created: %s", self._temp_dir)
        return self._temp_dir

    # ---- names ----
    def allocate_temp_name(self, base_hint: str | None, ext: str) -> str:
        """Create an empty, uniquely named file ``stub[N].ext`` and return its path."""
        temp_dir = self.ensure_temp_dir()
        stub = name_stub(base_hint, DEFAULT_STUB)
        while True:
            # Same index hint regardless of stub; it only speeds up probing
            idx = self._last_index
            for _ in range(SCAN_WINDOW):
                candidate = os.path.join(temp_dir, f"{stub}{idx or ''}.{ext}")
                try:
                    fd = os.open(candidate, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
                except OSError:
                    idx += 1
                    continue
                os.close(fd)
                self._last_index = idx
                return candidate
            self._last_index = idx
            if stub == DEFAULT_STUB:
                raise NameExhaustedError(f"no free temp name for {stub}*.{ext}", stub, ext)
            _logger.debug("temp names for %r exhausted, retrying with %r", stub, DEFAULT_STUB)
            stub = DEFAULT_STUB

    # ---- records ----
    def drop_anchor(self) -> None:
        """Stop reusing the current group; the next artifact starts a new one."""
        self._anchor = None
        self._anchor_revision = None

    def _anchor_group(self) -> list[TempFile]:
        if self._anchor is None:
            return []
        start = self._records.index(self._anchor)
        group = []
        for rec in self._records[start:]:
            if rec.anchor != self._anchor.serial:
                break
            group.append(rec)
        return group

    def _remember(self, path: str, fmt: FileFormat, rgb: bool, revision: int) -> TempFile:
        self._serial += 1
        if self._anchor is not None:
            rec = TempFile(path, fmt, rgb, anchor=self._anchor.serial, serial=self._serial)
            self._records.insert(self._records.index(self._anchor) + 1, rec)
        else:
            rec = TempFile(path, fmt, rgb, anchor=self._serial, serial=self._serial)
            self._records.insert(0, rec)
            self._anchor = rec
            self._anchor_revision = revision
        return rec

    def _discard(self, path: str) -> None:
        try:
            os.unlink(path)
        except OSError as e:
            _logger.debug("discard failed: %s: %s", path, e)

    def recall_or_create(
        self,
        document: DocumentState,
        fmt: FileFormat | None,
        rgb: bool,
        producer: ArtifactProducer,
    ) -> str:
        """Path of a file holding the document in ``fmt``/``rgb``.

        The document's own file is used when it is unmodified and already in
        that form; otherwise a temp artifact of the current group is reused or
        a new one written.
        Formats the producer has no saver for give way to the file's own
        format, then PNG.
        """
        # Use the original file if possible
        if (
            not document.modified
            and document.filename
            and rgb == (document.bpp == 3)
            and (fmt is None or detect_file_format(document.filename) == fmt)
        ):
            return document.filename

        if fmt is not None and not producer.can_save(fmt):
            _logger.debug("no saver for %s, choosing another format", fmt.name)
            fmt = None
        hint = "tmp.png"
        if fmt is None and document.filename:
            hint = document.filename
            fmt = format_by_ext(hint, RGB if rgb else save_mask(document))
            if fmt is not None and not producer.can_save(fmt):
                _logger.debug("no saver for %s, falling back to PNG", fmt.name)
                fmt = None
        if fmt is None:
            fmt = PNG

        if self._anchor is not None and self._anchor_revision != document.revision:
            self.drop_anchor()
        for rec in self._anchor_group():
            if rec.fmt == fmt and rec.rgb == rgb:
                return rec.name

        path = self.allocate_temp_name(hint, fmt.ext)
        try:
            source = document.as_rgb() if rgb else document
        except MemoryError as e:
            self._discard(path)
            raise ArtifactWriteError("out of memory converting to RGB", path, fmt.id) from e
        try:
            producer.save(path, fmt, source)
        except ArtifactWriteError:
            self._discard(path)
            raise

        rec = self._remember(path, fmt, rgb, document.revision)
        _logger.debug("temp artifact: %s (%s, rgb=%s)", rec.name, fmt.name, rgb)
        return rec.name

    # ---- cleanup ----
    def shutdown(self) -> None:
        """Remove every tracked file, then the directory. Safe to call twice."""
        for rec in self._records:
            try:
                os.unlink(rec.name)
            except FileNotFoundError:
                # External tools may have consumed it already
                continue
            except OSError as e:
                _logger.warning("temp file removal failed: %s: %s", rec.name, e)
        self._records.clear()
        self._anchor = None
        self._anchor_revision = None
        if self._temp_dir:
            try:
                os.rmdir(self._temp_dir)
            except OSError as e:
                _logger.warning("temp dir removal failed: %s: %s", self._temp_dir, e)
            self._temp_dir = None
