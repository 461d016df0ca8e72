from pathlib import Path


class TileStitcherError(Exception):
    """Base class for everything the tile tools raise on purpose."""


class ConfigurationError(TileStitcherError):
    """Options are missing or inconsistent; nothing has been done yet."""


class NetworkError(TileStitcherError):
    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class DecodeError(TileStitcherError):
    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class OutputWriteError(TileStitcherError):
    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"cannot write {path}: {message}")
        self.path = path
