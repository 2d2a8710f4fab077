"""xterm-256 palette.

Index i of ``XTERM256`` is the RGB value xterm renders for color code i, so a
palette index doubles as the terminal color code.
"""
from typing import List, Tuple

from PIL import Image

from colorfeed.resolver.errors import InvariantError
from colorfeed.resolver.models import PaletteColor

RGB = Tuple[int, int, int]

_SYSTEM = [
    (0, 0, 0), (128, 0, 0), (0, 128, 0), (128, 128, 0),
    (0, 0, 128), (128, 0, 128), (0, 128, 128), (192, 192, 192),
    (128, 128, 128), (255, 0, 0), (0, 255, 0), (255, 255, 0),
    (0, 0, 255), (255, 0, 255), (0, 255, 255), (255, 255, 255),
]
_CUBE_LEVELS = (0, 95, 135, 175, 215, 255)


def _build_palette() -> List[RGB]:
    colors = list(_SYSTEM)
    for r in _CUBE_LEVELS:
        for g in _CUBE_LEVELS:
            for b in _CUBE_LEVELS:
                colors.append((r, g, b))
    for i in range(24):
        level = 8 + 10 * i
        colors.append((level, level, level))
    return colors


XTERM256: List[RGB] = _build_palette()

# 1 for chromatic entries, 0 for grays; used with bytes.translate
CHROMA_TABLE = bytes(0 if r == g == b else 1 for r, g, b in XTERM256)


def palette_image() -> Image.Image:
    """A 'P' mode image carrying the palette, for ``Image.quantize``."""
    img = Image.new("P", (1, 1))
    img.putpalette([channel for rgb in XTERM256 for channel in rgb])
    return img


def palette_color(index: int) -> PaletteColor:
    """Wrap a palette index, rejecting anything outside the palette."""
    if not isinstance(index, int) or not 0 <= index < len(XTERM256):
        raise InvariantError(f"palette index out of range: {index!r}")
    return PaletteColor(xterm=index, rgb=XTERM256[index])


def nearest(rgb: RGB) -> PaletteColor:
    """Closest palette entry by squared euclidean distance in RGB."""
    r, g, b = rgb
    best = min(
        range(len(XTERM256)),
        key=lambda i: (XTERM256[i][0] - r) ** 2 + (XTERM256[i][1] - g) ** 2 + (XTERM256[i][2] - b) ** 2,
    )
    return palette_color(best)
