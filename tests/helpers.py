from pathlib import Path

from PIL import Image

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


def write_tile(path: Path, size: int, color, mode: str = "RGB") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, (size, size), color).save(path)
    return path


def assert_color(actual, expected, tolerance: int = 3) -> None:
    assert len(actual) >= 3
    for got, want in zip(actual[:3], expected):
        assert abs(got - want) <= tolerance, f"{actual} != {expected}"
