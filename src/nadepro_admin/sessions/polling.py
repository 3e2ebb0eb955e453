"""Cancellable fixed-cadence polling.

A poll is a scoped resource: whoever starts one owns the handle and must stop
it (``stop()``/``aclose()`` or ``async with``). Stopping never cancels a
request already in flight; its response is discarded when it arrives.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

from ..errors import AuthError, NadeProError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PeriodicPoll(Generic[T]):
    """Call ``fetch`` every ``interval`` seconds and hand results to ``on_result``.

    ``on_result`` returns False to end the poll. Transient failures are
    logged, passed to ``on_error`` and polling continues; an ``AuthError``
    (the session is gone after a forced logout) ends the poll and is
    re-raised from ``wait()``. Any other error (a malformed payload, a
    failing callback) also ends the poll and is re-raised from ``wait()``.
    There is no backoff.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        on_result: Callable[[T], bool],
        interval: float,
        on_error: Callable[[NadeProError], None] | None = None,
        name: str = "poll",
    ):
        self._fetch = fetch
        self._on_result = on_result
        self._on_error = on_error
        self.interval = interval
        self.name = name
        self.polls = 0
        self.discarded = 0
        self.error: Exception | None = None
        self._stopped = asyncio.Event()
        self._done = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._done.is_set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def start(self) -> "PeriodicPoll[T]":
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=self.name)
        return self

    def stop(self) -> None:
        """Stop polling. A response still in flight is discarded on arrival."""
        self._stopped.set()

    async def wait(self) -> None:
        """Wait until the poll has ended, re-raising the error that ended it."""
        if self._task is not None:
            await self._done.wait()
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.stop()
        if self._task is not None:
            await self._done.wait()

    async def __aenter__(self) -> "PeriodicPoll[T]":
        return self.start()

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def _run(self) -> None:
        try:
            while not self._stopped.is_set():
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
                    break
                except asyncio.TimeoutError:
                    pass

                try:
                    result = await self._fetch()
                except AuthError as e:
                    logger.warning("%s: authorization lost, stopping: %s", self.name, e)
                    self.error = e
                    break
                except NadeProError as e:
                    logger.warning("%s: poll failed: %s", self.name, e)
                    if self._on_error is not None:
                        self._on_error(e)
                    continue
                finally:
                    self.polls += 1

                if self._stopped.is_set():
                    self.discarded += 1
                    logger.debug("%s: discarding response received after stop", self.name)
                    break

                if not self._on_result(result):
                    break
        except Exception as e:
            logger.exception("%s: stopped by unexpected error", self.name)
            self.error = e
        finally:
            self._stopped.set()
            self._done.set()
