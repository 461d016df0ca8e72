import os

from .version import __version__

APP_VERSION = os.environ.get("TILE_STITCHER_VERSION", __version__)
USER_AGENT = f"tile-stitcher/{APP_VERSION}"
REQUEST_TIMEOUT = float(os.environ.get("TILE_STITCHER_TIMEOUT", "30.0"))
CONNECT_TIMEOUT = 20.0
DEFAULT_CONCURRENCY = 1
MAX_CONCURRENCY = 16

DEFAULT_PATTERN = "Z_X_Y.jpg"
ZOOM_TOKEN = "Z"
X_TOKEN = "X"
Y_TOKEN = "Y"

OUTPUT_PREFIX = "stitched"
OUTPUT_SUFFIX = ".jpg"
JPEG_QUALITY = 100
# Regions without a tile stay this colour in the output.
CANVAS_FILL = (0, 0, 0)
