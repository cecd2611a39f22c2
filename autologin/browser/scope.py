"""Attempt-scoped cancellation and deadlines."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from autologin.errors import LoginCancelledError, StepTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptScope:
    """Cancellation scope shared by every step of one login attempt.

    The scope ends when ``cancel()`` is called or when its optional
    deadline passes. ``run()`` executes one step under its own time budget
    and abandons it as soon as the scope ends.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._cancelled = asyncio.Event()
        self._timeout = timeout
        self._deadline: float | None = None
        self._reason = "cancelled"

    def _loop_time(self) -> float:
        return asyncio.get_running_loop().time()

    def start(self) -> "AttemptScope":
        """Start the deadline clock. Called automatically by the first ``run``."""
        if self._deadline is None and self._timeout is not None:
            self._deadline = self._loop_time() + self._timeout
        return self

    def cancel(self, reason: str = "cancelled") -> None:
        """End the scope, abandoning the step in flight."""
        if not self._cancelled.is_set():
            self._reason = reason
            self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        """Check if the scope has ended."""
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._loop_time())

    async def run(self, step: Awaitable[T], timeout: float | None, name: str) -> T:
        """
        Run one step inside the scope.

        Args:
            step: Coroutine performing the step
            timeout: Step budget in seconds (None for no step budget)
            name: Step name for errors

        Returns:
            The step result

        Raises:
            LoginCancelledError: The scope was cancelled or its deadline passed
            StepTimeoutError: The step exceeded its own budget
        """
        self.start()
        task = asyncio.ensure_future(step)

        if self.cancelled:
            await self._abandon(task)
            raise LoginCancelledError(name, self._reason)

        remaining = self.remaining()
        limits = [t for t in (timeout, remaining) if t is not None]
        limit = min(limits) if limits else None

        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, timeout=limit, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            # Let the step unwind before propagating the caller's cancellation
            await asyncio.shield(self._abandon(task))
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        await self._abandon(task)

        if self.cancelled:
            logger.warning(f"Step {name} abandoned: {self._reason}")
            raise LoginCancelledError(name, self._reason)

        if remaining is not None and (timeout is None or remaining <= timeout):
            self.cancel("deadline expired")
            logger.warning(f"Step {name} abandoned: attempt deadline expired")
            raise LoginCancelledError(name, self._reason)

        raise StepTimeoutError(name, timeout or 0.0)

    @staticmethod
    async def _abandon(task: asyncio.Future) -> None:
        task.cancel()
        # Wait for the step to unwind so nothing outlives the attempt
        await asyncio.gather(task, return_exceptions=True)
