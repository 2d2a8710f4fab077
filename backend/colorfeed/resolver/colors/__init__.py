from colorfeed.resolver.colors.palette import XTERM256, nearest, palette_color
from colorfeed.resolver.colors.strategies import (
    ColorStrategy,
    FirstColorStrategy,
    DominantColorStrategy,
    MeanColorStrategy,
    STRATEGIES,
    get_strategy
)

__all__ = [
    "XTERM256", "nearest", "palette_color",
    "ColorStrategy", "FirstColorStrategy", "DominantColorStrategy",
    "MeanColorStrategy", "STRATEGIES", "get_strategy"
]
