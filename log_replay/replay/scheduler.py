"""
Scheduler for replay batches

Waits until a batch is due on the wall clock, then emits its lines in
order through the callback. The wait is a single timer handle raced
against a cancellation token:

    ┌──────────────┐   call_later(delay)   ┌──────────────┐
    │  PendingWait │ ◄──────────────────── │  event loop  │
    │  (one slot)  │                       └──────────────┘
    └──────┬───────┘
           │ awaited together with
           ▼
    ┌──────────────────┐
    │ CancellationToken│ ◄── cancel() from a signal handler
    └──────────────────┘

Only one batch is in flight at a time: the replay loop awaits run() before
handing over the next batch.
"""

import asyncio
from collections.abc import Callable

from loguru import logger

from .batch import Batch
from .clock import ClockMapper


LineCallback = Callable[[str], None]


class CancellationToken:
    """
    Cooperative, externally triggered cancellation.

    Uses asyncio.Event so waiters are woken without polling. This is the
    only object a replay session shares with other subsystems.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.info("[CancellationToken] Cancellation requested")
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class PendingWait:
    """
    Cancellable delayed signal with a single-slot completion.

    The slot resolves to True when the timer fires and to False when the
    wait is cancelled; whichever happens first wins.
    """

    def __init__(self, delay: float):
        loop = asyncio.get_running_loop()
        self._done: asyncio.Future[bool] = loop.create_future()
        self._handle = loop.call_later(delay, self.fire)

    @property
    def done(self) -> asyncio.Future[bool]:
        return self._done

    def fire(self) -> None:
        if not self._done.done():
            self._done.set_result(True)

    def cancel(self) -> None:
        self._handle.cancel()
        if not self._done.done():
            self._done.set_result(False)

    async def wait(self) -> bool:
        return await self._done


class Scheduler:
    """Emits batches at their mapped wall-clock time."""

    def __init__(self, mapper: ClockMapper, token: CancellationToken):
        self._mapper = mapper
        self._token = token

    async def run(self, batch: Batch, callback: LineCallback) -> bool:
        """
        Wait for the batch's mapped time, then emit its lines.

        A batch that is already due (delay clamped to zero) fires at once,
        which also absorbs drift from earlier waits.

        Returns:
            True if the batch was flushed, False if cancellation arrived first
            and the batch was discarded
        """
        if self._token.is_cancelled:
            return False

        delay = self._mapper.delay_until(batch.anchor)
        logger.trace(f"[Scheduler] Batch of {len(batch)} line(s) due in {delay:.3f}s")

        pending = PendingWait(delay)
        cancelled = asyncio.ensure_future(self._token.wait())
        try:
            await asyncio.wait({pending.done, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            # Also reached on task cancellation: drop the timer and the token waiter
            pending.cancel()
            cancelled.cancel()

        if self._token.is_cancelled or not pending.done.result():
            logger.debug(f"[Scheduler] Wait cancelled, discarding {len(batch)} line(s)")
            return False

        for line in batch.lines:
            callback(line.text)
        return True
