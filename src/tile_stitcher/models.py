from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import DEFAULT_CONCURRENCY, DEFAULT_PATTERN, X_TOKEN, Y_TOKEN
from .errors import ConfigurationError


def _clean_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).replace('"', "").strip()


class StitchConfig(BaseModel):
    zoom_level: int = Field(ge=0)
    tile_size: int = Field(gt=0)
    x_range: Tuple[int, int]
    y_range: Tuple[int, int]
    pattern: str = DEFAULT_PATTERN
    location: str = Field(default="", validate_default=True)
    download_root: str = ""
    output_path: str = ""
    force_confirm: bool = False
    download: bool = False
    stitch: bool = False
    verbose: bool = True
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("x_range", "y_range")
    @classmethod
    def _check_range(cls, value: Tuple[int, int]) -> Tuple[int, int]:
        lo, hi = value
        if lo < 0:
            raise ValueError(f"minimum must be >= 0, got {lo}")
        if lo > hi:
            raise ValueError(f"minimum {lo} is greater than maximum {hi}")
        return value

    @field_validator("pattern", mode="before")
    @classmethod
    def _check_pattern(cls, value: object) -> str:
        pattern = _clean_text(value)
        missing = [token for token in (X_TOKEN, Y_TOKEN) if token not in pattern]
        if missing:
            raise ValueError(f"pattern {pattern!r} has no {' or '.join(missing)} placeholder")
        return pattern

    @field_validator("location", mode="before")
    @classmethod
    def _normalize_location(cls, value: object) -> str:
        location = _clean_text(value) or os.getcwd()
        separators = tuple(sep for sep in (os.sep, os.altsep) if sep)
        if not location.endswith(separators):
            location += os.sep
        return location

    @field_validator("download_root", "output_path", mode="before")
    @classmethod
    def _strip_text(cls, value: object) -> str:
        return _clean_text(value)

    @property
    def x_min(self) -> int:
        return self.x_range[0]

    @property
    def x_max(self) -> int:
        return self.x_range[1]

    @property
    def y_min(self) -> int:
        return self.y_range[0]

    @property
    def y_max(self) -> int:
        return self.y_range[1]

    @property
    def columns(self) -> int:
        return self.x_max - self.x_min + 1

    @property
    def rows(self) -> int:
        return self.y_max - self.y_min + 1

    @property
    def width(self) -> int:
        return self.tile_size * self.columns

    @property
    def height(self) -> int:
        return self.tile_size * self.rows

    @property
    def tile_count(self) -> int:
        return self.columns * self.rows

    @property
    def location_dir(self) -> Path:
        return Path(self.location)


def parse_config(**options) -> StitchConfig:
    """
    Build a StitchConfig, turning pydantic validation errors into one
    ConfigurationError with a readable message.
    """
    try:
        return StitchConfig(**options)
    except ValidationError as exc:
        problems = []
        for err in exc.errors():
            where = ".".join(str(part) for part in err["loc"]) or "config"
            problems.append(f"{where}: {err['msg']}")
        raise ConfigurationError("; ".join(problems)) from exc


FailureKind = Literal["network", "decode", "write"]


@dataclass
class TileFailure:
    x: int
    y: int
    kind: FailureKind
    target: str  # URL or local path
    message: str

    def __str__(self) -> str:
        return f"tile ({self.x}, {self.y}) {self.kind} error: {self.message}"


@dataclass
class RetrievalReport:
    fetched: int = 0
    skipped: int = 0
    failures: list[TileFailure] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def total(self) -> int:
        return self.fetched + self.skipped + self.failed

    @property
    def ok(self) -> bool:
        return not self.failures and not self.cancelled

    def summary(self) -> str:
        text = f"fetched {self.fetched}, skipped {self.skipped}, failed {self.failed}"
        if self.cancelled:
            text += " (cancelled)"
        return text


@dataclass
class StitchResult:
    output_path: Path
    width: int
    height: int
    tiles_used: int = 0
    tiles_missing: int = 0
    failures: list[TileFailure] = field(default_factory=list)
    renamed_from: Optional[Path] = None

    def summary(self) -> str:
        text = (
            f"{self.output_path} ({self.width} x {self.height}), "
            f"tiles used {self.tiles_used}, missing {self.tiles_missing}"
        )
        if self.failures:
            text += f", unreadable {len(self.failures)}"
        return text
