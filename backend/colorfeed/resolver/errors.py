"""Error taxonomy for the color resolution pipeline."""
import enum


class ErrorKind(str, enum.Enum):
    TRANSPORT = "TRANSPORT"
    PARSE = "PARSE"
    CANCELLED = "CANCELLED"
    INVARIANT = "INVARIANT"


class ResolverError(Exception):
    """Base class for pipeline errors."""
    kind: ErrorKind = ErrorKind.INVARIANT


class TransportError(ResolverError):
    """Network failure on an upstream page or image fetch."""
    kind = ErrorKind.TRANSPORT


class ParseError(ResolverError):
    """Malformed listing JSON or undecodable image."""
    kind = ErrorKind.PARSE


class CancelledError(ResolverError):
    """Cancellation or deadline observed before the work completed.

    Not to be confused with ``asyncio.CancelledError``, which is a task being
    torn down; this one is a per-item outcome.
    """
    kind = ErrorKind.CANCELLED


class InvariantError(ResolverError):
    """Internal contract violation, fatal to a single task only."""
    kind = ErrorKind.INVARIANT


class EndOfResults(Exception):
    """Raised by the pager when no more results are available."""
    pass
