"""
Tests for the notification dispatcher.
"""

import asyncio

import pytest

from studieo.core.notifications import NotificationDispatcher


async def _sent(recipient: str, outbox: list[str]) -> bool:
    outbox.append(recipient)
    return True


async def _failing() -> bool:
    raise RuntimeError("mail provider unavailable")


async def _undelivered() -> bool:
    return False


class TestNotificationDispatcher:
    """Tests for NotificationDispatcher."""

    @pytest.mark.asyncio
    async def test_dispatch_does_not_wait_for_delivery(self):
        dispatcher = NotificationDispatcher()
        outbox: list[str] = []

        dispatcher.dispatch("team_invite", _sent("a@uni.edu", outbox))

        assert outbox == []
        assert dispatcher.pending == 1

        await dispatcher.drain()

        assert outbox == ["a@uni.edu"]
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_failing_send_does_not_affect_others(self, caplog):
        dispatcher = NotificationDispatcher()
        outbox: list[str] = []

        dispatcher.dispatch("application_accepted", _sent("a@uni.edu", outbox))
        failing = dispatcher.dispatch("application_accepted", _failing())
        dispatcher.dispatch("application_accepted", _sent("b@uni.edu", outbox))

        await dispatcher.drain()

        assert sorted(outbox) == ["a@uni.edu", "b@uni.edu"]
        # The error boundary swallows the failure
        assert failing.exception() is None
        assert "Notification 'application_accepted' failed" in caplog.text

    @pytest.mark.asyncio
    async def test_undelivered_send_is_logged(self, caplog):
        dispatcher = NotificationDispatcher()

        dispatcher.dispatch("team_invite", _undelivered())
        await dispatcher.drain()

        assert "Notification 'team_invite' was not delivered" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_cancels_sends_past_timeout(self):
        dispatcher = NotificationDispatcher()
        task = dispatcher.dispatch("team_invite", asyncio.sleep(10, result=True))

        await dispatcher.drain(timeout=0.01)
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self):
        dispatcher = NotificationDispatcher()

        await dispatcher.drain(timeout=1)

        assert dispatcher.pending == 0
