import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Optional

import httpx

from ..config import (
    CONNECT_TIMEOUT,
    DEFAULT_CONCURRENCY,
    MAX_CONCURRENCY,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from ..errors import NetworkError
from ..models import RetrievalReport, StitchConfig, TileFailure
from ..utils import iter_cells, temp_sibling, tile_path, tile_url

logger = logging.getLogger(__name__)


def build_http_client(concurrency: int = DEFAULT_CONCURRENCY) -> httpx.Client:
    timeout = httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT)
    limits = httpx.Limits(
        max_connections=concurrency,
        max_keepalive_connections=concurrency,
    )
    return httpx.Client(
        headers={"User-Agent": USER_AGENT},
        timeout=timeout,
        limits=limits,
    )


def build_async_http_client(concurrency: int = DEFAULT_CONCURRENCY) -> httpx.AsyncClient:
    timeout = httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT)
    limits = httpx.Limits(
        max_connections=concurrency,
        max_keepalive_connections=concurrency,
    )
    return httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        timeout=timeout,
        limits=limits,
    )


def write_atomic(dest: Path, payload: bytes) -> None:
    """
    Write to a temporary sibling and rename it over dest, so a reader never
    sees a half-written tile even when two runs race on the same file.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = temp_sibling(dest)
    try:
        tmp.write_bytes(payload)
        os.replace(tmp, dest)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def fetch_tile(client: httpx.Client, url: str, dest: Path) -> int:
    """Single attempt GET of url into dest. Returns the number of bytes written."""
    try:
        resp = client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise NetworkError(url, str(exc) or type(exc).__name__) from exc

    if resp.status_code != 200:
        raise NetworkError(url, f"HTTP {resp.status_code}")

    write_atomic(dest, resp.content)
    return len(resp.content)


async def fetch_tile_async(client: httpx.AsyncClient, url: str, dest: Path) -> int:
    try:
        resp = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise NetworkError(url, str(exc) or type(exc).__name__) from exc

    if resp.status_code != 200:
        raise NetworkError(url, f"HTTP {resp.status_code}")

    await asyncio.to_thread(write_atomic, dest, resp.content)
    return len(resp.content)


def retrieve(
    config: StitchConfig,
    client: Optional[httpx.Client] = None,
    cancel_flag: Optional[threading.Event] = None,
) -> RetrievalReport:
    """
    Fetch every tile of the configured range that is not on disk yet.

    Tiles already present are skipped without touching the network. A failed
    tile is recorded in the report and the loop moves on to the next cell.
    """
    report = RetrievalReport()
    if not config.download_root:
        logger.warning("No download root given, skipping download")
        return report

    logger.info("Preparing to download the tiles.")
    logger.info("Destination: %s", config.location)

    own_client = client is None
    if client is None:
        client = build_http_client()
    try:
        for x, y in iter_cells(config.x_range, config.y_range):
            if cancel_flag is not None and cancel_flag.is_set():
                report.cancelled = True
                logger.warning("Download cancelled")
                break
            _retrieve_cell(client, config, x, y, report)
    finally:
        if own_client:
            client.close()

    logger.info("Download finished: %s", report.summary())
    return report


def _retrieve_cell(
    client: httpx.Client,
    config: StitchConfig,
    x: int,
    y: int,
    report: RetrievalReport,
) -> None:
    dest = tile_path(config, x, y)
    if dest.exists():
        report.skipped += 1
        logger.debug("File [EXISTS]: %s", dest)
        return

    url = tile_url(config, x, y)
    try:
        size = fetch_tile(client, url, dest)
    except NetworkError as exc:
        _record_failure(report, TileFailure(x, y, "network", url, str(exc)))
        return
    except OSError as exc:
        _record_failure(report, TileFailure(x, y, "write", str(dest), str(exc)))
        return

    report.fetched += 1
    logger.info("Downloading %s ... done (%d bytes)", url, size)


def _record_failure(report: RetrievalReport, failure: TileFailure) -> None:
    report.failures.append(failure)
    logger.warning("%s", failure)


def retrieve_concurrent(
    config: StitchConfig,
    concurrency: int = DEFAULT_CONCURRENCY,
    cancel_flag: Optional[threading.Event] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> RetrievalReport:
    """
    Same policy as retrieve(), with up to `concurrency` fetches in flight.
    concurrency <= 1 falls back to the sequential path (client is then unused).
    """
    if concurrency <= 1:
        return retrieve(config, cancel_flag=cancel_flag)
    if not config.download_root:
        logger.warning("No download root given, skipping download")
        return RetrievalReport()

    concurrency = min(concurrency, MAX_CONCURRENCY)
    logger.info("Preparing to download the tiles (%d at a time).", concurrency)
    logger.info("Destination: %s", config.location)
    report = asyncio.run(_retrieve_async(config, concurrency, cancel_flag, client))
    logger.info("Download finished: %s", report.summary())
    return report


async def _retrieve_async(
    config: StitchConfig,
    concurrency: int,
    cancel_flag: Optional[threading.Event],
    client: Optional[httpx.AsyncClient],
) -> RetrievalReport:
    report = RetrievalReport()
    pending: list[tuple[int, int, Path, str]] = []
    for x, y in iter_cells(config.x_range, config.y_range):
        dest = tile_path(config, x, y)
        if dest.exists():
            report.skipped += 1
            logger.debug("File [EXISTS]: %s", dest)
            continue
        pending.append((x, y, dest, tile_url(config, x, y)))

    if not pending:
        return report

    def _cancelled() -> bool:
        return cancel_flag is not None and cancel_flag.is_set()

    own_client = client is None
    if client is None:
        client = build_async_http_client(concurrency)
    sem = asyncio.Semaphore(concurrency)

    async def bounded_fetch(x: int, y: int, dest: Path, url: str):
        if _cancelled():
            raise asyncio.CancelledError()
        async with sem:
            if _cancelled():
                raise asyncio.CancelledError()
            try:
                size = await fetch_tile_async(client, url, dest)
                return x, y, dest, url, size, None
            except (NetworkError, OSError) as exc:
                return x, y, dest, url, None, exc

    tasks = [asyncio.create_task(bounded_fetch(*item)) for item in pending]
    try:
        for coro in asyncio.as_completed(tasks):
            if _cancelled():
                raise asyncio.CancelledError()
            x, y, dest, url, size, exc = await coro
            if isinstance(exc, NetworkError):
                _record_failure(report, TileFailure(x, y, "network", url, str(exc)))
            elif exc is not None:
                _record_failure(report, TileFailure(x, y, "write", str(dest), str(exc)))
            else:
                report.fetched += 1
                logger.info("Downloading %s ... done (%d bytes)", url, size)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        report.cancelled = True
        logger.warning("Download cancelled")
    finally:
        if own_client:
            await client.aclose()

    return report
