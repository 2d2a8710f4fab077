"""Resolver package - concurrent color resolution for recent uploads."""
from .cancellation import CancellationToken, Deadline
from .errors import (
    ErrorKind,
    ResolverError,
    TransportError,
    ParseError,
    CancelledError,
    InvariantError,
    EndOfResults,
)
from .models import ColorResult, PaletteColor, ResolveRequest
from .pipeline import ColorPipeline, ColorResolver

__all__ = [
    "CancellationToken",
    "Deadline",
    "ErrorKind",
    "ResolverError",
    "TransportError",
    "ParseError",
    "CancelledError",
    "InvariantError",
    "EndOfResults",
    "ColorResult",
    "PaletteColor",
    "ResolveRequest",
    "ColorPipeline",
    "ColorResolver",
]
