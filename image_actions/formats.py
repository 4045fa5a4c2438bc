"""Static table of image file formats known to the action templates.

Formats are looked up by directive tokens (``>png``), by file extension, and
by sniffing a file's leading bytes. Keep this module free of pyvips/Qt.
"""

from __future__ import annotations

import contextlib
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from image_actions.document import DocumentState

# Format flags
IMAGE = 0x01
NOSAVE = 0x02
RGB = 0x04
INDEXED = 0x08
BW = 0x10
ALPHA = 0x20

_SNIFF_BYTES = 16


@dataclass(frozen=True)
class FileFormat:
    id: str
    name: str
    ext: str
    ext2: str
    flags: int
    vips_suffix: str
    palette: bool = False  # saver accepts palette=True

    @property
    def saveable(self) -> bool:
        return bool(self.flags & IMAGE) and not self.flags & NOSAVE

    def matches(self, token: str) -> bool:
        t = token.lower()
        return bool(t) and t in (self.name.lower(), self.ext, self.ext2)


PNG = FileFormat("png", "PNG", "png", "", IMAGE | RGB | INDEXED | BW | ALPHA, ".png", palette=True)
JPEG = FileFormat("jpeg", "JPEG", "jpg", "jpeg", IMAGE | RGB, ".jpg")
JP2 = FileFormat("jp2", "JPEG2000", "jp2", "", IMAGE | RGB | ALPHA, ".jp2")
J2K = FileFormat("j2k", "J2K", "j2k", "jpc", IMAGE | RGB | ALPHA, ".j2k")
TIFF = FileFormat("tiff", "TIFF", "tif", "tiff", IMAGE | RGB | INDEXED | BW | ALPHA, ".tif")
GIF = FileFormat("gif", "GIF", "gif", "", IMAGE | INDEXED | BW, ".gif")
BMP = FileFormat("bmp", "BMP", "bmp", "", IMAGE | RGB | INDEXED | BW | ALPHA, ".bmp")
XPM = FileFormat("xpm", "XPM", "xpm", "", IMAGE | INDEXED | BW, ".xpm")
XBM = FileFormat("xbm", "XBM", "xbm", "", IMAGE | BW, ".xbm")
TGA = FileFormat("tga", "TGA", "tga", "", IMAGE | RGB | INDEXED | BW | ALPHA, ".tga")
PCX = FileFormat("pcx", "PCX", "pcx", "", IMAGE | RGB | INDEXED | BW, ".pcx")
PBM = FileFormat("pbm", "PBM", "pbm", "", IMAGE | BW, ".pbm")
PGM = FileFormat("pgm", "PGM", "pgm", "", IMAGE | INDEXED, ".pgm")
PPM = FileFormat("ppm", "PPM", "ppm", "pnm", IMAGE | RGB, ".ppm")
PAM = FileFormat("pam", "PAM", "pam", "", IMAGE | RGB | BW | ALPHA, ".pam")
WEBP = FileFormat("webp", "WebP", "webp", "", IMAGE | RGB | ALPHA, ".webp")
ICO = FileFormat("ico", "ICO", "ico", "", IMAGE | RGB | INDEXED | BW | ALPHA, ".ico")
SVG = FileFormat("svg", "SVG", "svg", "", IMAGE | NOSAVE, ".svg")

FORMATS: tuple[FileFormat, ...] = (
    PNG, JPEG, JP2, J2K, TIFF, GIF, BMP, XPM, XBM, TGA, PCX, PBM, PGM, PPM, PAM, WEBP, ICO, SVG,
)


def save_mask(document: DocumentState) -> int:
    """Format flags able to hold the document in its native colour mode."""
    if document.bpp == 3:
        return RGB
    return INDEXED if document.colors > 2 else BW | INDEXED


def find_format(token: str) -> FileFormat | None:
    """Saveable image format named by a directive token (name or extension)."""
    found = None
    for ff in FORMATS:
        if ff.saveable and ff.matches(token):
            found = ff
    return found


def format_by_ext(path: str, mask: int | None = None) -> FileFormat | None:
    """Saveable format for the path's extension, optionally limited by ``mask``."""
    ext = os.path.splitext(path)[1][1:].lower()
    if not ext:
        return None
    for ff in FORMATS:
        if not ff.saveable or ext not in (ff.ext, ff.ext2):
            continue
        if mask is None or ff.flags & mask:
            return ff
    return None


def _sniff(head: bytes) -> FileFormat | None:
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return PNG
    if head.startswith(b"\xff\xd8\xff"):
        return JPEG
    if head.startswith(b"GIF8"):
        return GIF
    if head.startswith((b"II*\x00", b"MM\x00*")):
        return TIFF
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return WEBP
    if head.startswith(b"\x00\x00\x00\x0cjP  "):
        return JP2
    if head.startswith(b"\xff\x4f\xff\x51"):
        return J2K
    if head.startswith(b"BM"):
        return BMP
    if head.startswith(b"\x00\x00\x01\x00"):
        return ICO
    if head.startswith(b"/* XPM */"):
        return XPM
    if len(head) >= 2 and head[:1] == b"P":
        return {
            b"1": PBM, b"4": PBM, b"2": PGM, b"5": PGM, b"3": PPM, b"6": PPM, b"7": PAM,
        }.get(head[1:2])
    if head.lstrip().startswith((b"<svg", b"<?xml")):
        return SVG
    return None


def detect_file_format(path: str) -> FileFormat | None:
    """Identify a file by its leading bytes, falling back to the extension."""
    head = b""
    with contextlib.suppress(OSError), open(path, "rb") as f:
        head = f.read(_SNIFF_BYTES)
    if not head:
        return None
    found = _sniff(head)
    if found is not None:
        return found
    ext = os.path.splitext(path)[1][1:].lower()
    for ff in FORMATS:
        if ext and ext in (ff.ext, ff.ext2):
            return ff
    return None
