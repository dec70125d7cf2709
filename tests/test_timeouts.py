"""Tests for deadline enforcement across call phases."""

import asyncio

import pytest
from fakes import HANG, FakeResponse, FakeTransport, Recorder, make_client
from svcclient import RequestTimeoutError
from svcclient.core.timeout import TimerState
from svcclient.models.errors import ProtocolError


class TestDeadline:
    """Tests for calls that outlive their deadline."""

    @pytest.mark.asyncio
    async def test_silent_transport_times_out_once(self):
        """Test a 50ms deadline against a transport that never answers."""
        transport = FakeTransport(HANG)
        client = make_client(transport, timeout=0.05)
        recorder = Recorder()

        loop = asyncio.get_running_loop()
        started = loop.time()
        ctx = client.send("GET", "https://example.com/slow", None, recorder.on_success, recorder.on_error)
        await asyncio.wait_for(ctx.wait(), timeout=2)
        elapsed = loop.time() - started

        assert elapsed >= 0.04
        assert recorder.successes == []
        value, error = recorder.errors[0]
        assert len(recorder.errors) == 1
        assert value is None
        assert isinstance(error, RequestTimeoutError)
        assert isinstance(error, TimeoutError)
        assert error.url == "https://example.com/slow"
        assert error.timeout == 0.05
        assert transport.requests[0].aborted
        assert ctx.timed_out
        assert ctx.timer.state == TimerState.FIRED

    @pytest.mark.asyncio
    async def test_late_response_not_delivered(self):
        """Test that data arriving after the deadline never reaches on_success."""
        transport = FakeTransport(HANG)
        client = make_client(transport, timeout=0.05)
        recorder = Recorder()

        ctx = client.send("GET", "https://example.com/slow", None, recorder.on_success, recorder.on_error)
        await asyncio.wait_for(ctx.wait(), timeout=2)

        transport.requests[0].deliver_late()
        await asyncio.sleep(0.05)

        assert recorder.successes == []
        assert recorder.outcome_count == 1

    @pytest.mark.asyncio
    async def test_timeout_during_body_read(self):
        """Test that a stalled read loop is aborted by the deadline."""
        response = FakeResponse(200, [b'{"id":', b"7}"], stall_after=1)
        transport = FakeTransport(response)
        client = make_client(transport, timeout=0.05)
        recorder = Recorder()

        ctx = client.send("GET", "https://example.com/slow", None, recorder.on_success, recorder.on_error)
        await asyncio.wait_for(ctx.wait(), timeout=2)

        assert recorder.successes == []
        assert isinstance(recorder.error, RequestTimeoutError)
        assert response.released
        assert ctx.response_buffer is None

    @pytest.mark.asyncio
    async def test_timeout_while_reading_error_body(self):
        """Test that a stalled error body is still aborted by the deadline."""
        response = FakeResponse(500, [b'{"a":', b"1}"], reason="Internal Server Error", stall_after=1)
        transport = FakeTransport(response)
        client = make_client(transport, timeout=0.05)
        recorder = Recorder()

        ctx = client.send("GET", "https://example.com/broken", None, recorder.on_success, recorder.on_error)
        await asyncio.wait_for(ctx.wait(), timeout=2)

        assert recorder.successes == []
        error = recorder.error
        assert isinstance(error, RequestTimeoutError)
        assert isinstance(error.__cause__, ProtocolError)
        assert error.__cause__.status_code == 500
        assert transport.requests[0].aborted
        assert response.released
        assert ctx.timer.state == TimerState.FIRED

    @pytest.mark.asyncio
    async def test_deadline_not_reset_by_activity(self):
        """Test that the deadline is measured from dispatch."""
        transport = FakeTransport(HANG)
        client = make_client(transport, timeout=0.1)
        recorder = Recorder()

        ctx = client.send("GET", "https://example.com/slow", None, recorder.on_success, recorder.on_error)
        await asyncio.sleep(0.05)
        assert recorder.outcome_count == 0
        await asyncio.wait_for(ctx.wait(), timeout=2)

        assert isinstance(recorder.error, RequestTimeoutError)

    @pytest.mark.asyncio
    async def test_completion_disarms_timer(self):
        """Test that a finished call cancels its deadline."""
        transport = FakeTransport(FakeResponse(200, b"{}"))
        client = make_client(transport, timeout=0.05)
        recorder = Recorder()

        ctx = client.send("GET", "https://example.com/fast", None, recorder.on_success, recorder.on_error)
        await ctx.wait()
        await asyncio.sleep(0.1)

        assert recorder.successes == [{}]
        assert recorder.errors == []
        assert ctx.timer.state == TimerState.DISARMED
        assert transport.requests[0].aborted is False

    @pytest.mark.asyncio
    async def test_default_timeout_is_sixty_seconds(self):
        """Test the deadline used when none is configured."""
        transport = FakeTransport(FakeResponse(200, b"{}"))
        ctx = make_client(transport).send("GET", "https://example.com/fast", None)
        assert ctx.timer.timeout == 60.0
        await ctx.wait()


class TestExactlyOnce:
    """Exactly one continuation fires, whatever ends the call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome",
        [
            FakeResponse(200, b'{"ok": true}'),
            FakeResponse(200, b"garbage"),
            FakeResponse(500, b"{}", reason="Internal Server Error"),
            FakeResponse(503, [b"{", b"}"], reason="Service Unavailable", stall_after=1),
            FakeResponse(404, [b'{"code":', b'"x"}'], reason="Not Found", stall_after=1),
            FakeResponse(200, [b"{"], read_error=ConnectionResetError()),
            ConnectionRefusedError(),
            HANG,
        ],
        ids=[
            "success",
            "bad-body",
            "server-error",
            "stalled-server-error",
            "stalled-client-error",
            "read-error",
            "refused",
            "timeout",
        ],
    )
    async def test_single_outcome(self, outcome):
        """Test that every terminal path delivers exactly one outcome."""
        transport = FakeTransport(outcome)
        client = make_client(transport, timeout=0.05)
        recorder = Recorder()

        ctx = client.send("GET", "https://example.com/x", None, recorder.on_success, recorder.on_error)
        await asyncio.wait_for(ctx.wait(), timeout=2)
        await asyncio.sleep(0.06)

        assert recorder.outcome_count == 1
        assert ctx.delivered
        assert ctx.response_buffer is None
