"""Artifact producer: writes the document to a file in a requested format.

Encoding goes through pyvips into memory first; the bytes then replace the
target path in one rename so readers never see a half-written file.
"""

from __future__ import annotations

import contextlib
import os
from typing import Any, Protocol

import numpy as np

from image_actions.document import RGB_CHANNELS, DocumentState, get_pyvips
from image_actions.errors import ArtifactWriteError
from image_actions.formats import ALPHA, FileFormat
from image_actions.logger import get_logger

_logger = get_logger("encoder")

_saver_suffixes: frozenset[str] | None = None


def vips_saver_suffixes() -> frozenset[str]:
    """Lower-cased file suffixes libvips has a saver for, read once."""
    global _saver_suffixes
    if _saver_suffixes is None:
        pyvips = get_pyvips()
        _saver_suffixes = frozenset(s.lower() for s in pyvips.base.get_suffixes())
        _logger.debug("libvips savers: %s", " ".join(sorted(_saver_suffixes)))
    return _saver_suffixes


class ArtifactProducer(Protocol):
    def can_save(self, fmt: FileFormat) -> bool:
        """Whether ``save`` can write ``fmt`` at all."""
        ...

    def save(self, path: str, fmt: FileFormat, document: DocumentState) -> None:
        """Write ``document`` to ``path``; raise ArtifactWriteError on failure."""
        ...


def _write_atomic(path: str, data: bytes) -> None:
    part = path + ".part"
    try:
        with open(part, "wb") as f:
            f.write(data)
        os.replace(part, path)
    except OSError as e:
        with contextlib.suppress(OSError):
            os.unlink(part)
        raise ArtifactWriteError(f"cannot write {path}: {e}", path) from e


class VipsImageSaver:
    """Encode documents with pyvips ``write_to_buffer``."""

    def can_save(self, fmt: FileFormat) -> bool:
        return fmt.saveable and fmt.vips_suffix.lower() in vips_saver_suffixes()

    def _to_vips(self, document: DocumentState, fmt: FileFormat) -> Any:
        pyvips = get_pyvips()
        rgb = document.to_rgb()
        bands = RGB_CHANNELS
        if document.alpha is not None and fmt.flags & ALPHA:
            rgb = np.dstack((rgb, document.alpha))
            bands += 1
        buf = np.ascontiguousarray(rgb, dtype=np.uint8).tobytes()
        image = pyvips.Image.new_from_memory(buf, document.width, document.height, bands, "uchar")
        return image.copy(interpretation="srgb")

    def save(self, path: str, fmt: FileFormat, document: DocumentState) -> None:
        options: dict[str, Any] = {}
        if document.is_indexed and fmt.palette:
            options["palette"] = True
        try:
            image = self._to_vips(document, fmt)
            data = image.write_to_buffer(fmt.vips_suffix, **options)
        except MemoryError as e:
            raise ArtifactWriteError(f"out of memory encoding {fmt.name}", path, fmt.id) from e
        except Exception as e:
            _logger.debug("encode failed: %s -> %s", fmt.name, e)
            raise ArtifactWriteError(f"cannot encode {fmt.name}: {e}", path, fmt.id) from e
        _write_atomic(path, data)
        _logger.debug("saved %s artifact: %s (%d bytes)", fmt.name, path, len(data))
