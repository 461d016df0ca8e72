import logging

import pytest

from tile_stitcher.models import StitchConfig, parse_config


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> StitchConfig:
        options = {
            "zoom_level": 3,
            "tile_size": 16,
            "x_range": (0, 1),
            "y_range": (0, 1),
            "pattern": "Z_X_Y.png",
            "location": str(tmp_path),
        }
        options.update(overrides)
        return parse_config(**options)

    return _make


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger("tile_stitcher")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    if hasattr(logger, "_tile_stitcher_configured"):
        del logger._tile_stitcher_configured
