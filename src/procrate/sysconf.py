"""Runtime configuration values resolved through getconf(1)."""

import asyncio
import logging

from procrate.errors import SourceUnavailableError

logger = logging.getLogger(__name__)


async def getconf(key: str) -> int:
    """
    Ask getconf(1) for an integer system configuration value.

    Raises:
        SourceUnavailableError: getconf could not be run, failed, or printed
            something other than an integer.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            "getconf",
            key,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise SourceUnavailableError(f"Cannot run getconf {key}: {exc}") from exc

    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        raise SourceUnavailableError(
            f"getconf {key} exited with {process.returncode}: {stderr.decode().strip()}"
        )
    try:
        value = int(stdout.decode().strip())
    except ValueError as exc:
        raise SourceUnavailableError(f"getconf {key} returned {stdout!r}") from exc

    logger.debug("getconf %s = %d", key, value)
    return value


class SystemConf:
    """
    Page size and clock tick rate, resolved once and cached.

    Values passed to the constructor are used as-is and never looked up.
    """

    def __init__(self, page_size: int | None = None, clock_ticks: int | None = None) -> None:
        self._page_size = page_size
        self._clock_ticks = clock_ticks

    async def page_size(self) -> int:
        """Page size in bytes."""
        if self._page_size is None:
            self._page_size = await getconf("PAGESIZE")
        return self._page_size

    async def clock_ticks(self) -> int:
        """Clock ticks per second."""
        if self._clock_ticks is None:
            self._clock_ticks = await getconf("CLK_TCK")
        return self._clock_ticks
