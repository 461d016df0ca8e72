import argparse
import logging
import sys
import threading
from typing import Callable, Optional

from .config import DEFAULT_CONCURRENCY, DEFAULT_PATTERN
from .errors import ConfigurationError, OutputWriteError
from .logging_setup import setup_logging
from .models import StitchConfig, parse_config
from .services.stitcher import describe, stitch
from .services.tiles import retrieve_concurrent

logger = logging.getLogger("tile_stitcher")

Ask = Callable[[str], str]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tile-stitcher",
        description="Download a grid of map tiles and stitch them into one JPEG",
    )
    parser.add_argument("-d", "--Download", action="store_true", help="Download missing tiles first")
    parser.add_argument("-u", "--DownloadRoot", default="", help="URL prefix the tile file names are appended to")
    parser.add_argument("-z", "--ZoomLevel", type=int, required=True, help="Zoom level, 0 if the pattern has none")
    parser.add_argument("-t", "--TileSize", type=int, required=True, help="Width/height of tiles in pixels")
    parser.add_argument("-l", "--Location", default="", help="Tile folder (current directory if omitted)")
    parser.add_argument("-p", "--Pattern", default=DEFAULT_PATTERN, help="Tile file name pattern with Z, X and Y")
    parser.add_argument("-x", "--Xmin", type=int, default=0, help="First tile column, zero based")
    parser.add_argument("-X", "--Xmax", type=int, required=True, help="Last tile column, zero based")
    parser.add_argument("-y", "--Ymin", type=int, default=0, help="First tile row, zero based")
    parser.add_argument("-Y", "--Ymax", type=int, required=True, help="Last tile row, zero based")
    parser.add_argument("-o", "--OutputFile", default="", help="Output JPEG path (auto-named if omitted)")
    parser.add_argument("-s", "--StitchImage", action="store_true", help="Stitch the tiles into one image")
    parser.add_argument("-f", "--ForceStitch", action="store_true", help="Do not ask for confirmation")
    parser.add_argument(
        "-v",
        "--Verbose",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Print per-tile progress",
    )
    parser.add_argument(
        "-c",
        "--Concurrency",
        type=int,
        default=DEFAULT_CONCURRENCY,
        help="Tiles downloaded in parallel",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> StitchConfig:
    return parse_config(
        zoom_level=args.ZoomLevel,
        tile_size=args.TileSize,
        x_range=(args.Xmin, args.Xmax),
        y_range=(args.Ymin, args.Ymax),
        pattern=args.Pattern,
        location=args.Location,
        download_root=args.DownloadRoot,
        output_path=args.OutputFile,
        force_confirm=args.ForceStitch,
        download=args.Download,
        stitch=args.StitchImage,
        verbose=args.Verbose,
        concurrency=args.Concurrency,
    )


def confirm(ask: Ask = input) -> bool:
    """Ask until the answer is Y or N. End of input counts as N."""
    while True:
        try:
            answer = ask("Press Y to continue or N to cancel: ")
        except EOFError:
            return False
        answer = answer.strip().lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def run(config: StitchConfig, cancel_flag: Optional[threading.Event] = None, ask: Ask = input) -> int:
    """Run the configured steps. Per-tile problems are reported, not fatal."""
    if not config.download and not config.stitch:
        logger.warning("Nothing to do: pass -d to download and/or -s to stitch")
        return 0

    if config.download:
        if not config.download_root:
            logger.warning("-d given without -u/--DownloadRoot, skipping download")
        else:
            print(f"Tiles will be downloaded from {config.download_root} into {config.location}")
            if config.force_confirm or confirm(ask):
                report = retrieve_concurrent(config, config.concurrency, cancel_flag)
                print(f"Download: {report.summary()}")
                for failure in report.failures:
                    print(f"  {failure}")
            else:
                print("Job canceled by user.")

    if config.stitch:
        print(describe(config))
        if config.force_confirm or confirm(ask):
            result = stitch(config)
            print(f"Saved {result.summary()}")
        else:
            print("Job canceled by user.")

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(verbose=config.verbose)
    cancel_flag = threading.Event()
    try:
        return run(config, cancel_flag)
    except OutputWriteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        cancel_flag.set()
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
