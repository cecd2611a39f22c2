"""Tests for AttemptScope."""

import asyncio

import pytest

from autologin.browser.scope import AttemptScope
from autologin.errors import LoginCancelledError, StepTimeoutError


class TestAttemptScope:
    """Tests for attempt-scoped cancellation."""

    @pytest.mark.asyncio
    async def test_returns_step_result(self):
        """Test a step finishing within its budget."""

        async def step():
            return 42

        assert await AttemptScope().run(step(), timeout=1.0, name="step") == 42

    @pytest.mark.asyncio
    async def test_step_errors_propagate(self):
        """Test that step exceptions are raised unchanged."""

        async def step():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await AttemptScope().run(step(), timeout=1.0, name="step")

    @pytest.mark.asyncio
    async def test_step_timeout(self):
        """A slow step raises StepTimeoutError without ending the scope."""
        scope = AttemptScope()

        with pytest.raises(StepTimeoutError) as exc_info:
            await scope.run(asyncio.sleep(5), timeout=0.05, name="fill_user")

        assert exc_info.value.step == "fill_user"
        assert scope.cancelled is False

    @pytest.mark.asyncio
    async def test_cancel_abandons_step(self):
        """Cancelling the scope interrupts the step in flight."""
        scope = AttemptScope()
        unwound = asyncio.Event()

        async def step():
            try:
                await asyncio.sleep(10)
            finally:
                unwound.set()

        async def cancel_soon():
            await asyncio.sleep(0.05)
            scope.cancel()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(LoginCancelledError) as exc_info:
            await asyncio.wait_for(scope.run(step(), timeout=None, name="recognize"), timeout=1.0)
        await canceller

        assert exc_info.value.step == "recognize"
        assert exc_info.value.reason == "cancelled"
        assert unwound.is_set()

    @pytest.mark.asyncio
    async def test_cancelled_scope_runs_nothing(self):
        """Steps submitted after cancellation never start."""
        scope = AttemptScope()
        scope.cancel("user abort")
        started = False

        async def step():
            nonlocal started
            started = True

        with pytest.raises(LoginCancelledError) as exc_info:
            await scope.run(step(), timeout=1.0, name="locate_user")

        assert exc_info.value.reason == "user abort"
        assert started is False

    @pytest.mark.asyncio
    async def test_deadline_expiry_cancels_scope(self):
        """Running past the attempt deadline ends the whole scope."""
        scope = AttemptScope(timeout=0.1)

        with pytest.raises(LoginCancelledError) as exc_info:
            await scope.run(asyncio.sleep(5), timeout=1.0, name="settle")

        assert exc_info.value.reason == "deadline expired"
        assert scope.cancelled is True

        with pytest.raises(LoginCancelledError):
            await scope.run(asyncio.sleep(0), timeout=1.0, name="classify")

    @pytest.mark.asyncio
    async def test_remaining(self):
        """Test the deadline clock."""
        assert AttemptScope().remaining() is None

        scope = AttemptScope(timeout=10).start()
        remaining = scope.remaining()
        assert remaining is not None and 9 < remaining <= 10

    @pytest.mark.asyncio
    async def test_caller_cancellation_waits_for_step(self):
        """When the caller is cancelled, the step has unwound before run() returns."""
        scope = AttemptScope()
        started = asyncio.Event()
        cleaned_up = False

        async def step():
            nonlocal cleaned_up
            started.set()
            try:
                await asyncio.sleep(10)
            finally:
                await asyncio.sleep(0.05)
                cleaned_up = True

        runner = asyncio.create_task(scope.run(step(), timeout=None, name="recognize"))
        await asyncio.wait_for(started.wait(), timeout=1.0)
        runner.cancel()

        with pytest.raises(asyncio.CancelledError):
            await runner

        assert cleaned_up is True
