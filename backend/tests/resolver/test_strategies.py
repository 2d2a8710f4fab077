"""Test palette and color strategies."""
import pytest
from PIL import Image

from colorfeed.resolver.cancellation import CancellationToken
from colorfeed.resolver.colors import (
    XTERM256,
    DominantColorStrategy,
    FirstColorStrategy,
    MeanColorStrategy,
    get_strategy,
    nearest,
    palette_color,
)
from colorfeed.resolver.errors import CancelledError, InvariantError, ParseError
from colorfeed.resolver.sources.images import decode_image

GRAY = (128, 128, 128)
RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def test_palette_has_256_entries():
    assert len(XTERM256) == 256
    assert XTERM256[16] == (0, 0, 0)
    assert XTERM256[231] == (255, 255, 255)
    assert XTERM256[232] == (8, 8, 8)


def test_palette_color_rejects_out_of_range_index():
    with pytest.raises(InvariantError):
        palette_color(256)


def test_nearest_snaps_to_palette():
    color = nearest((250, 5, 3))
    assert color.hex == "#ff0000"
    assert color.is_gray is False


def test_first_color_scans_row_major():
    """Row 1 is reached before column 0 of row 2."""
    img = Image.new("RGB", (4, 4), GRAY)
    img.putpixel((2, 1), RED)
    img.putpixel((0, 2), GREEN)

    color = FirstColorStrategy().compute(img)
    assert color.hex == "#ff0000"


def test_first_color_grayscale_falls_back_to_last_pixel():
    img = Image.new("RGB", (3, 3), GRAY)
    img.putpixel((2, 2), (8, 8, 8))

    color = FirstColorStrategy().compute(img)
    assert color.is_gray
    assert color.hex == "#080808"


def test_first_color_handles_non_rgb_modes():
    img = Image.new("RGBA", (2, 2), (0, 0, 255, 255))
    assert FirstColorStrategy().compute(img).hex == "#0000ff"


def test_dominant_color_is_histogram_mode():
    img = Image.new("RGB", (4, 4), BLUE)
    for x in range(3):
        img.putpixel((x, 0), RED)

    assert DominantColorStrategy().compute(img).hex == "#0000ff"


def test_mean_color_averages_pixels():
    img = Image.new("RGB", (2, 1))
    img.putpixel((0, 0), RED)
    img.putpixel((1, 0), BLUE)

    assert MeanColorStrategy().compute(img).hex == "#800080"


@pytest.mark.parametrize("strategy_cls", [FirstColorStrategy, DominantColorStrategy, MeanColorStrategy])
def test_cancelled_token_aborts_scan(strategy_cls):
    token = CancellationToken()
    token.cancel("deadline exceeded")
    img = Image.new("RGB", (64, 64), GRAY)

    with pytest.raises(CancelledError):
        strategy_cls(check_every=1).compute(img, token)


@pytest.mark.parametrize("strategy_cls", [FirstColorStrategy, DominantColorStrategy, MeanColorStrategy])
def test_scan_polls_token_between_bands(strategy_cls):
    """A token fired mid-scan is seen within check_every rows."""
    token = CancellationToken()
    img = Image.new("RGB", (8, 64), GRAY)
    checks = []

    class FiringStrategy(strategy_cls):
        def _check(self, t):
            checks.append(t)
            if len(checks) == 3:
                t.cancel()
            super()._check(t)

    with pytest.raises(CancelledError):
        FiringStrategy(check_every=4).compute(img, token)
    assert len(checks) == 3


def test_first_color_found_in_a_later_band():
    img = Image.new("RGB", (3, 10), GRAY)
    img.putpixel((1, 7), GREEN)
    img.putpixel((0, 9), RED)

    assert FirstColorStrategy(check_every=2).compute(img).hex == "#00ff00"


def test_dominant_color_counts_across_bands():
    """Counts from every band are summed before picking the mode."""
    img = Image.new("RGB", (4, 8), BLUE)
    for y in range(3):
        for x in range(4):
            img.putpixel((x, y), RED)

    assert DominantColorStrategy(check_every=2).compute(img).hex == "#0000ff"


def test_mean_color_averages_across_bands():
    img = Image.new("RGB", (1, 2))
    img.putpixel((0, 0), RED)
    img.putpixel((0, 1), BLUE)

    assert MeanColorStrategy(check_every=1).compute(img).hex == "#800080"


def test_get_strategy_by_name():
    assert isinstance(get_strategy("first"), FirstColorStrategy)
    assert isinstance(get_strategy("dominant", check_every=8), DominantColorStrategy)
    assert isinstance(get_strategy("mean"), MeanColorStrategy)


def test_get_strategy_unknown_name():
    with pytest.raises(ValueError, match="Unknown color strategy"):
        get_strategy("median")


def test_decode_image_roundtrips_png(png):
    img = decode_image(png(RED, size=(3, 2)))
    assert img.size == (3, 2)


def test_decode_image_rejects_garbage():
    with pytest.raises(ParseError):
        decode_image(b"definitely not an image")
