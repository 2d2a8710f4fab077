from dataclasses import dataclass
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from colorfeed.resolver.errors import ErrorKind, ResolverError


class PaletteColor(BaseModel):
    """A color snapped to the xterm-256 palette."""
    model_config = ConfigDict(frozen=True)

    xterm: int = Field(ge=0, le=255, description="xterm-256 color index")
    rgb: Tuple[int, int, int]

    @property
    def hex(self) -> str:
        r, g, b = self.rgb
        return f"#{r:02x}{g:02x}{b:02x}"

    @property
    def is_gray(self) -> bool:
        r, g, b = self.rgb
        return r == g == b


class ColorResult(BaseModel):
    """Outcome of resolving one submitted URL, success or typed failure."""
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    hex: Optional[str] = None
    xterm: Optional[int] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, url: str, color: PaletteColor) -> "ColorResult":
        return cls(url=url, hex=color.hex, xterm=color.xterm)

    @classmethod
    def failure(cls, url: Optional[str], exc: ResolverError) -> "ColorResult":
        return cls(url=url, error_kind=exc.kind, error=str(exc) or exc.__class__.__name__)

    @classmethod
    def cancelled(cls, url: Optional[str], reason: str = "cancelled") -> "ColorResult":
        return cls(url=url, error_kind=ErrorKind.CANCELLED, error=reason)


@dataclass(frozen=True)
class WorkItem:
    """One URL submitted to the worker pool within a session."""
    seq: int
    url: str


class ResolveRequest(BaseModel):
    """Caller-facing parameters for one resolve session."""
    max_images: int = Field(ge=1)
    workers: int = Field(ge=1)
    queue_capacity: int = Field(ge=1)
    deadline_seconds: float = Field(gt=0)
