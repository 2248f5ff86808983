import asyncio
import logging
from datetime import datetime, timezone

import httpx

logger = logging.getLogger(__name__)


async def ping_once(client: httpx.AsyncClient, url: str) -> bool:
    """GET url once and log the outcome. Returns True when the request completed."""
    stamp = datetime.now(timezone.utc).isoformat()
    try:
        await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("[KeepAlive] Ping failed at %s: %s", stamp, e)
        return False
    logger.info("[KeepAlive] Pinged at %s", stamp)
    return True


async def keep_alive_loop(url: str, interval_seconds: float) -> None:
    """Ping url every interval_seconds until cancelled."""
    async with httpx.AsyncClient(timeout=interval_seconds) as client:
        while True:
            await asyncio.sleep(interval_seconds)
            await ping_once(client, url)


def start_keep_alive(url: str | None, interval_seconds: float) -> asyncio.Task[None] | None:
    """Schedule the keep-alive loop when a URL is configured."""
    if not url:
        return None
    logger.info("Keep-alive enabled: %s every %ss", url, interval_seconds)
    return asyncio.create_task(keep_alive_loop(url, interval_seconds), name="keep-alive")


async def stop_keep_alive(task: asyncio.Task[None] | None) -> None:
    """Cancel the keep-alive task and wait for it to finish."""
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.debug("Keep-alive stopped")
