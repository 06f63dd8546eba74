"""Polls the ledger for the transaction carrying a checkout's reference."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Type
from types import TracebackType

from refpay.crypto.keys import PublicKey
from refpay.domain.entities import SignatureInfo
from refpay.domain.errors import (
    LedgerUnavailable,
    PollError,
    PollingExpired,
    ReferenceNotFound,
)
from refpay.domain.shared import LedgerClientProtocol

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5

ErrorCallback = Callable[[PollError], None]


class ConfirmationPoller:
    """Repeatedly asks the ledger whether any transaction lists a reference.

    Each tick has three outcomes:

    - found: return the signature and stop;
    - ``ReferenceNotFound``: the normal waiting state, keep going quietly;
    - any other ``LedgerUnavailable``: report a ``PollError`` through
      ``on_error`` and keep going.

    With ``max_attempts`` or ``timeout`` set, running out raises
    ``PollingExpired``. Without either, polling runs until cancelled.
    """

    def __init__(
        self,
        ledger: LedgerClientProtocol,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        commitment: str = "confirmed",
        on_error: Optional[ErrorCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval < 0:
            raise ValueError("interval cannot be negative")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.ledger = ledger
        self.interval = interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.commitment = commitment
        self.on_error = on_error
        self._sleep = sleep

    async def wait_for(
        self, reference: PublicKey, *, on_error: Optional[ErrorCallback] = None
    ) -> SignatureInfo:
        callbacks = [cb for cb in (self.on_error, on_error) if cb is not None]
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout if self.timeout is not None else None
        attempts = 0

        while True:
            attempts += 1
            lookup = self.ledger.find_reference(reference, self.commitment)
            try:
                if deadline is None:
                    info = await lookup
                else:
                    info = await asyncio.wait_for(
                        lookup, timeout=max(deadline - loop.time(), 0)
                    )
            except asyncio.TimeoutError:
                raise PollingExpired(
                    f"Reference {reference} not found within {self.timeout}s"
                ) from None
            except ReferenceNotFound:
                logger.debug("Reference %s not found yet (poll %d)", reference, attempts)
            except LedgerUnavailable as e:
                error = PollError(f"Poll {attempts} for {reference} failed: {e}")
                error.__cause__ = e
                logger.warning("%s", error)
                for callback in callbacks:
                    callback(error)
            else:
                logger.info("Reference %s found in %s", reference, info.signature)
                return info

            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise PollingExpired(
                    f"Reference {reference} not found after {attempts} polls"
                )
            if deadline is not None and loop.time() >= deadline:
                raise PollingExpired(
                    f"Reference {reference} not found within {self.timeout}s"
                )
            await self._sleep(self.interval)

    def start(
        self, reference: PublicKey, *, on_error: Optional[ErrorCallback] = None
    ) -> "PollHandle":
        """Run :meth:`wait_for` in the background and return its handle."""
        task = asyncio.create_task(
            self.wait_for(reference, on_error=on_error), name=f"poll-{reference}"
        )
        return PollHandle(task)


class PollHandle:
    """Explicit handle on a running poll.

    Use as an async context manager: leaving the block cancels the poll and
    waits for it to stop, whatever the exit path.
    """

    def __init__(self, task: "asyncio.Task[SignatureInfo]") -> None:
        self._task = task

    @property
    def task(self) -> "asyncio.Task[SignatureInfo]":
        return self._task

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        self._task.cancel()

    async def result(self) -> SignatureInfo:
        return await self._task

    async def aclose(self) -> None:
        """Cancel and wait until the poll task has fully stopped."""
        if not self._task.done():
            self._task.cancel()
        await asyncio.wait({self._task})
        if not self._task.cancelled():
            self._task.exception()

    async def __aenter__(self) -> "PollHandle":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
