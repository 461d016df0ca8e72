import uuid
from pathlib import Path
from typing import Iterator, Tuple

from .config import OUTPUT_PREFIX, OUTPUT_SUFFIX, X_TOKEN, Y_TOKEN, ZOOM_TOKEN
from .models import StitchConfig


def tile_filename(pattern: str, zoom_level: int, x: int, y: int) -> str:
    """
    Substitute the first Z, X and Y of the pattern, in that order:
    "Z_X_Y.jpg", 5, 3, 7 -> "5_3_7.jpg".
    """
    name = pattern.replace(ZOOM_TOKEN, str(zoom_level), 1)
    name = name.replace(X_TOKEN, str(x), 1)
    return name.replace(Y_TOKEN, str(y), 1)


def iter_cells(x_range: Tuple[int, int], y_range: Tuple[int, int]) -> Iterator[Tuple[int, int]]:
    x_min, x_max = x_range
    y_min, y_max = y_range
    for x in range(x_min, x_max + 1):
        for y in range(y_min, y_max + 1):
            yield x, y


def config_filename(config: StitchConfig, x: int, y: int) -> str:
    return tile_filename(config.pattern, config.zoom_level, x, y)


def tile_path(config: StitchConfig, x: int, y: int) -> Path:
    return Path(config.location + config_filename(config, x, y))


def tile_url(config: StitchConfig, x: int, y: int) -> str:
    return config.download_root + config_filename(config, x, y)


def canvas_offset(config: StitchConfig, x: int, y: int) -> Tuple[int, int]:
    return (
        config.tile_size * (x - config.x_min),
        config.tile_size * (y - config.y_min),
    )


def canvas_size(config: StitchConfig) -> Tuple[int, int]:
    return config.width, config.height


def default_output_path(config: StitchConfig) -> Path:
    name = (
        f"{OUTPUT_PREFIX}_{config.x_min}-{config.y_min}"
        f"_to_{config.x_max}-{config.y_max}{OUTPUT_SUFFIX}"
    )
    return Path(config.location + name)


def unique_output_path(path: Path) -> Path:
    """Return path itself when free, otherwise a sibling with a random suffix before the extension."""
    candidate = path
    while candidate.exists():
        candidate = path.with_name(f"{path.stem}_{uuid.uuid4().hex}{path.suffix}")
    return candidate


def temp_sibling(path: Path) -> Path:
    # Same directory so os.replace stays on one filesystem.
    return path.with_name(f".{path.name}.{uuid.uuid4().hex}.part")
