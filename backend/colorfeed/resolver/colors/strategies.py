"""Interchangeable pixel-to-color reduction strategies."""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Type

from PIL import Image, ImageStat

from colorfeed.resolver.cancellation import CancellationToken
from colorfeed.resolver.errors import ParseError
from colorfeed.resolver.colors.palette import CHROMA_TABLE, XTERM256, nearest, palette_color, palette_image
from colorfeed.resolver.models import PaletteColor

logger = logging.getLogger(__name__)


class ColorStrategy(ABC):
    """Reduces a decoded image to a single palette color.

    Implementations run in a worker thread. Every pass over the pixels works
    in horizontal bands of ``check_every`` rows and polls the token between
    bands, so a cancelled scan stops promptly instead of holding the thread.
    """

    def __init__(self, check_every: int = 16):
        if check_every < 1:
            raise ValueError("check_every must be at least 1")
        self.check_every = check_every

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name for this strategy."""
        pass

    @abstractmethod
    def compute(self, image: Image.Image, token: Optional[CancellationToken] = None) -> PaletteColor:
        """Return the representative color of ``image``."""
        pass

    def _bands(self, image: Image.Image, token: Optional[CancellationToken]) -> Iterator[Image.Image]:
        """Yield RGB slices of ``check_every`` rows, top to bottom."""
        width, height = image.size
        if width == 0 or height == 0:
            raise ParseError("image has no pixels")
        for top in range(0, height, self.check_every):
            self._check(token)
            band = image.crop((0, top, width, min(top + self.check_every, height)))
            yield band if band.mode == "RGB" else band.convert("RGB")

    @staticmethod
    def _quantize(band: Image.Image, palette: Image.Image) -> Image.Image:
        return band.quantize(palette=palette, dither=Image.Dither.NONE)

    @staticmethod
    def _check(token: Optional[CancellationToken]) -> None:
        if token is not None:
            token.raise_if_cancelled()


class FirstColorStrategy(ColorStrategy):
    """First non-gray pixel, scanning row-major from the top left.

    Gray means the pixel's palette entry has equal red, green and blue. A
    fully grayscale image falls back to its last pixel.
    """
    name = "first"

    def compute(self, image, token=None):
        self._check(token)
        palette = palette_image()
        last = None
        for band in self._bands(image, token):
            data = self._quantize(band, palette).tobytes()
            x = data.translate(CHROMA_TABLE).find(1)
            if x != -1:
                return palette_color(data[x])
            last = data[-1]
        return palette_color(last)


class DominantColorStrategy(ColorStrategy):
    """Most frequent palette color (histogram mode)."""
    name = "dominant"

    def compute(self, image, token=None):
        self._check(token)
        palette = palette_image()
        counts = [0] * len(XTERM256)
        for band in self._bands(image, token):
            for index, count in enumerate(self._quantize(band, palette).histogram()[:len(counts)]):
                counts[index] += count
        index = max(range(len(counts)), key=counts.__getitem__)
        return palette_color(index)


class MeanColorStrategy(ColorStrategy):
    """Arithmetic mean of all pixels, snapped to the nearest palette color."""
    name = "mean"

    def compute(self, image, token=None):
        self._check(token)
        totals = [0.0, 0.0, 0.0]
        pixels = 0
        for band in self._bands(image, token):
            stat = ImageStat.Stat(band)
            for channel in range(3):
                totals[channel] += stat.sum[channel]
            pixels += band.width * band.height
        mean = tuple(int(round(total / pixels)) for total in totals)
        return nearest(mean)


STRATEGIES: Dict[str, Type[ColorStrategy]] = {
    FirstColorStrategy.name: FirstColorStrategy,
    DominantColorStrategy.name: DominantColorStrategy,
    MeanColorStrategy.name: MeanColorStrategy,
}


def get_strategy(name: str, check_every: int = 16) -> ColorStrategy:
    """Instantiate a strategy by registry name."""
    try:
        strategy_cls = STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unknown color strategy '{name}'. Choose from: {', '.join(STRATEGIES)}")
    logger.debug(f"Using color strategy: {name}")
    return strategy_cls(check_every=check_every)
