from pathlib import Path
import sys


def main() -> int:
    """
    Thin entrypoint: add ./src to sys.path and run the packaged CLI.
    """
    root = Path(__file__).resolve().parent
    src_path = root / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))
    from tile_stitcher.__main__ import main as app_main

    return app_main()


if __name__ == "__main__":
    sys.exit(main())
