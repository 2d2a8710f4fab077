"""colorfeed - representative colors for recent Wikimedia Commons uploads."""

__version__ = "0.1.0"
