"""Tests for PeriodicPoll."""

import asyncio

import pytest

from nadepro_admin.errors import AuthError, TransientRequestError
from nadepro_admin.models import Session
from nadepro_admin.sessions.polling import PeriodicPoll

INTERVAL = 0.01


def collect(results, until=None):
    def _on_result(value):
        results.append(value)
        return value != until
    return _on_result


class TestPeriodicPoll:
    @pytest.mark.asyncio
    async def test_polls_until_on_result_false(self):
        values = iter([1, 2, 3, 4])
        results = []

        async def fetch():
            return next(values)

        poll = PeriodicPoll(fetch, collect(results, until=3), interval=INTERVAL).start()
        await asyncio.wait_for(poll.wait(), timeout=1)

        assert results == [1, 2, 3]
        assert poll.polls == 3
        assert poll.running is False
        assert poll.stopped is True

    @pytest.mark.asyncio
    async def test_waits_interval_before_first_fetch(self):
        calls = []

        async def fetch():
            calls.append(1)
            return 1

        poll = PeriodicPoll(fetch, collect([]), interval=10).start()
        await asyncio.sleep(0.02)
        await poll.aclose()

        assert calls == []

    @pytest.mark.asyncio
    async def test_transient_errors_keep_polling(self):
        outcomes = iter([TransientRequestError("503"), "ok"])
        errors = []
        results = []

        async def fetch():
            value = next(outcomes)
            if isinstance(value, Exception):
                raise value
            return value

        poll = PeriodicPoll(
            fetch, collect(results, until="ok"), interval=INTERVAL, on_error=errors.append
        ).start()
        await asyncio.wait_for(poll.wait(), timeout=1)

        assert results == ["ok"]
        assert len(errors) == 1
        assert poll.polls == 2

    @pytest.mark.asyncio
    async def test_auth_error_ends_poll_and_reraises(self):
        async def fetch():
            raise AuthError("Unauthorized", 401)

        poll = PeriodicPoll(fetch, collect([]), interval=INTERVAL).start()

        with pytest.raises(AuthError):
            await asyncio.wait_for(poll.wait(), timeout=1)
        assert poll.running is False

    @pytest.mark.asyncio
    async def test_stop_discards_in_flight_response(self):
        """A response that arrives after stop() is never applied."""
        started = asyncio.Event()
        release = asyncio.Event()
        results = []

        async def fetch():
            started.set()
            await release.wait()
            return "late"

        poll = PeriodicPoll(fetch, collect(results), interval=INTERVAL).start()
        await asyncio.wait_for(started.wait(), timeout=1)

        poll.stop()
        assert poll.running is True  # request still in flight, not cancelled

        release.set()
        await asyncio.wait_for(poll.wait(), timeout=1)

        assert results == []
        assert poll.discarded == 1
        assert poll.polls == 1

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        async def fetch():
            return 1

        poll = PeriodicPoll(fetch, collect([]), interval=10)
        assert poll.start() is poll
        task = poll._task
        poll.start()
        assert poll._task is task
        await poll.aclose()

    @pytest.mark.asyncio
    async def test_context_manager_stops(self):
        async def fetch():
            return 1

        async with PeriodicPoll(fetch, collect([]), interval=10) as poll:
            assert poll.running
        assert not poll.running

    @pytest.mark.asyncio
    async def test_wait_without_start(self):
        async def fetch():
            return 1

        await PeriodicPoll(fetch, collect([]), interval=10).wait()

    @pytest.mark.asyncio
    async def test_unparseable_payload_raised_from_wait(self):
        """A fetch that fails outside the client error types ends the poll loudly."""

        async def fetch():
            return Session.from_dict({"id": "s1", "status": "hibernating"})

        poll = PeriodicPoll(fetch, collect([]), interval=INTERVAL).start()

        with pytest.raises(ValueError, match="hibernating"):
            await asyncio.wait_for(poll.wait(), timeout=1)
        assert isinstance(poll.error, ValueError)
        assert poll.running is False
        assert poll.polls == 1

    @pytest.mark.asyncio
    async def test_failing_on_result_raised_from_wait(self):
        async def fetch():
            return 1

        def on_result(value):
            raise KeyError("id")

        poll = PeriodicPoll(fetch, on_result, interval=INTERVAL).start()

        with pytest.raises(KeyError):
            await asyncio.wait_for(poll.wait(), timeout=1)
        assert poll.stopped is True
