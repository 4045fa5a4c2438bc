"""Read-only snapshot of the open document, as seen by the action templates.

The application owns the real pixel buffers; templates only read this
snapshot. ``revision`` changes whenever the image content changes so cached
temp artifacts can be told apart from stale ones.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import numpy as np

from image_actions.logger import get_logger
from image_actions.path_utils import abs_path_str

_logger = get_logger("document")

RGB_CHANNELS = 3

_pyvips: Any | None = None


def get_pyvips() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        _pyvips = pyvips
    return _pyvips


@dataclass(frozen=True)
class DocumentState:
    """Snapshot of the open image.

    image:
        ``(h, w)`` palette indices when ``bpp == 1``, ``(h, w, 3)`` RGB when ``bpp == 3``.
    palette:
        ``(n, 3)`` uint8 colours for indexed images.
    selection:
        ``(x, y, w, h)`` of the marquee, or None when nothing is selected.
    """

    image: np.ndarray
    bpp: int = 3
    palette: np.ndarray | None = None
    colors: int = 256
    filename: str | None = None
    modified: bool = False
    revision: int = 0
    transparent_index: int = -1
    selection: tuple[int, int, int, int] | None = None
    cursor: tuple[int, int] = (0, 0)
    alpha: np.ndarray | None = None
    selection_mask: np.ndarray | None = None
    mask: np.ndarray | None = None

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def is_indexed(self) -> bool:
        return self.bpp == 1

    @property
    def has_alpha(self) -> bool:
        return self.alpha is not None

    @property
    def has_selection_mask(self) -> bool:
        return self.selection_mask is not None

    @property
    def has_mask(self) -> bool:
        return self.mask is not None

    def to_rgb(self) -> np.ndarray:
        """RGB pixels; indexed images are expanded through the palette."""
        if self.bpp == RGB_CHANNELS:
            return self.image
        if self.palette is None:
            raise ValueError("indexed document has no palette")
        return np.asarray(self.palette, dtype=np.uint8)[self.image]

    def as_rgb(self) -> DocumentState:
        if self.bpp == RGB_CHANNELS:
            return self
        return replace(self, image=self.to_rgb(), bpp=RGB_CHANNELS)


def load_document(path: str) -> DocumentState:
    """Decode an image file into an unmodified RGB document using pyvips."""
    pyvips = get_pyvips()
    # Random access: pixels and alpha are read in separate passes
    image = pyvips.Image.new_from_file(path)
    if image.interpretation != "srgb":
        image = image.colourspace("srgb")
    if image.format != "uchar":
        image = image.cast("uchar")

    alpha = None
    if image.hasalpha():
        alpha_band = image.extract_band(image.bands - 1)
        alpha = np.frombuffer(alpha_band.write_to_memory(), dtype=np.uint8).reshape(image.height, image.width)
        image = image.extract_band(0, n=image.bands - 1)
    if image.bands > RGB_CHANNELS:
        image = image.extract_band(0, n=RGB_CHANNELS)
    elif image.bands < RGB_CHANNELS:
        image = pyvips.Image.bandjoin([image] * RGB_CHANNELS)

    array = np.frombuffer(image.write_to_memory(), dtype=np.uint8).reshape(image.height, image.width, RGB_CHANNELS)
    _logger.debug("loaded document: %s (%dx%d)", path, image.width, image.height)
    return DocumentState(
        image=array.copy(),
        bpp=RGB_CHANNELS,
        filename=abs_path_str(path),
        alpha=None if alpha is None else alpha.copy(),
    )


def blank_document() -> DocumentState:
    """Empty stand-in used when no image is open."""
    return DocumentState(image=np.zeros((0, 0, RGB_CHANNELS), dtype=np.uint8))
