import logging
import os
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from ..config import CANVAS_FILL, JPEG_QUALITY
from ..errors import DecodeError, OutputWriteError
from ..models import StitchConfig, StitchResult, TileFailure
from ..utils import (
    canvas_offset,
    canvas_size,
    default_output_path,
    iter_cells,
    temp_sibling,
    tile_path,
    unique_output_path,
)

logger = logging.getLogger(__name__)


def describe(config: StitchConfig) -> str:
    width, height = canvas_size(config)
    return (
        f"Image will be {width} x {height} "
        f"({config.columns} x {config.rows} tiles of {config.tile_size}px)"
    )


def load_tile(path: Path, tile_size: int) -> Image.Image:
    """
    Decode one tile fully into memory as RGB.
    Raises DecodeError for unreadable files and for tiles that are not
    tile_size x tile_size.
    """
    try:
        with Image.open(path) as img:
            img.load()
            if img.size != (tile_size, tile_size):
                raise DecodeError(
                    path,
                    f"expected {tile_size}x{tile_size}, got {img.size[0]}x{img.size[1]}",
                )
            return img.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DecodeError(path, str(exc)) from exc


def resolve_output_path(config: StitchConfig) -> Path:
    if config.output_path:
        return Path(config.output_path)
    return default_output_path(config)


def save_jpeg(canvas: Image.Image, path: Path) -> Path:
    """
    Encode canvas at maximum JPEG quality under path, or under a suffixed
    sibling when path is taken. Returns the path actually written.

    The image goes to a temporary sibling first and is published with a hard
    link, which fails instead of replacing a file that appeared meanwhile.
    On any failure the temporary file is removed and nothing is left behind.
    """
    target = unique_output_path(path)
    tmp = temp_sibling(target)
    try:
        canvas.save(tmp, format="JPEG", quality=JPEG_QUALITY, subsampling=0)
        while True:
            try:
                os.link(tmp, target)
                break
            except FileExistsError:
                target = unique_output_path(path)
    except (OSError, ValueError) as exc:
        raise OutputWriteError(target, str(exc)) from exc
    finally:
        tmp.unlink(missing_ok=True)
    return target


def stitch(config: StitchConfig) -> StitchResult:
    """
    Paste every tile of the range onto one canvas and write it as JPEG.

    Missing and unreadable tiles leave their region at CANVAS_FILL (black);
    a range with no tiles at all still produces an all-black image.
    An existing output file is never overwritten: a random suffix is
    added to the name instead.
    """
    width, height = canvas_size(config)
    logger.info("Preparing to build the image.")
    logger.info("Looking in: %s", config.location)
    logger.info("%s", describe(config))

    canvas = Image.new("RGB", (width, height), CANVAS_FILL)
    used = 0
    missing = 0
    failures: list[TileFailure] = []

    for x, y in iter_cells(config.x_range, config.y_range):
        path = tile_path(config, x, y)
        if not path.exists():
            missing += 1
            logger.info("File [MISSING]: %s", path)
            continue

        logger.info("File [EXISTS]: %s", path)
        try:
            tile = load_tile(path, config.tile_size)
        except DecodeError as exc:
            missing += 1
            failure = TileFailure(x, y, "decode", str(path), str(exc))
            failures.append(failure)
            logger.warning("%s", failure)
            continue

        canvas.paste(tile, canvas_offset(config, x, y))
        tile.close()
        used += 1

    requested = resolve_output_path(config)
    logger.info('Saving file as "%s"...', requested)
    try:
        final_path = save_jpeg(canvas, requested)
    finally:
        canvas.close()
    if final_path != requested:
        logger.warning("%s already exists, saved as %s", requested, final_path)
    logger.info("Done.")

    return StitchResult(
        output_path=final_path,
        width=width,
        height=height,
        tiles_used=used,
        tiles_missing=missing,
        failures=failures,
        renamed_from=requested if final_path != requested else None,
    )
