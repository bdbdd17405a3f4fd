"""Tests for the listener lifecycle (real loopback sockets)."""

from __future__ import annotations

import logging
import os
import signal
import socket
import threading
import time

import httpx
import pytest

from userfinder.domain.models import ListenerState, LookupCommand
from userfinder.endpoint.lifecycle import LifecycleError, ListenerLifecycle
from userfinder.endpoint.server import create_app

HOST = "127.0.0.1"
BODY = b'{"DisplayName": "alice"}'


def send_lookup(port: int, timeout: float = 10.0) -> httpx.Response:
    return httpx.request(
        "GET", f"http://{HOST}:{port}/v1/users/42", content=BODY, timeout=timeout
    )


def send_later(signum: int, delay: float = 0.2) -> threading.Timer:
    timer = threading.Timer(delay, os.kill, (os.getpid(), signum))
    timer.start()
    return timer


class SlowSink:
    """Command sink that blocks for ``delay`` seconds once a command arrives."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.entered = threading.Event()
        self.commands: list[LookupCommand] = []

    def __call__(self, command: LookupCommand) -> None:
        self.entered.set()
        time.sleep(self.delay)
        self.commands.append(command)


class InFlightRequest(threading.Thread):
    def __init__(self, port: int) -> None:
        super().__init__(daemon=True)
        self.port = port
        self.response: httpx.Response | None = None

    def run(self) -> None:
        self.response = send_lookup(self.port)


@pytest.fixture
def lifecycle():
    lc = ListenerLifecycle(create_app(), host=HOST, port=0, grace_period=5.0)
    yield lc
    lc.shutdown(grace_period=1.0)


class TestListenerLifecycle:
    def test_initial_state(self, lifecycle: ListenerLifecycle) -> None:
        assert lifecycle.state == ListenerState.CREATED
        assert lifecycle.error is None
        assert lifecycle.bound_port is None
        assert not lifecycle.is_serving

    def test_start_serves_in_background(self, lifecycle: ListenerLifecycle) -> None:
        lifecycle.start()
        assert lifecycle.state == ListenerState.RUNNING
        assert lifecycle.wait_until_started()
        resp = send_lookup(lifecycle.bound_port)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/json"

    def test_start_twice_raises(self, lifecycle: ListenerLifecycle) -> None:
        lifecycle.start()
        with pytest.raises(LifecycleError, match="running"):
            lifecycle.start()

    def test_shutdown_stops_accepting(self, lifecycle: ListenerLifecycle) -> None:
        lifecycle.start()
        assert lifecycle.wait_until_started()
        port = lifecycle.bound_port
        lifecycle.shutdown()
        assert lifecycle.state == ListenerState.STOPPED
        assert not lifecycle.is_serving
        with pytest.raises(httpx.ConnectError):
            send_lookup(port, timeout=2.0)

    def test_shutdown_before_start(self, lifecycle: ListenerLifecycle) -> None:
        lifecycle.shutdown()
        assert lifecycle.state == ListenerState.STOPPED

    def test_shutdown_is_idempotent(self, lifecycle: ListenerLifecycle) -> None:
        lifecycle.start()
        assert lifecycle.wait_until_started()
        lifecycle.shutdown()
        lifecycle.shutdown()
        assert lifecycle.state == ListenerState.STOPPED

    def test_server_exiting_on_its_own_is_stopped(self, lifecycle: ListenerLifecycle) -> None:
        lifecycle.start()
        assert lifecycle.wait_until_started()
        lifecycle._server.should_exit = True
        lifecycle._thread.join(5.0)
        assert lifecycle.state == ListenerState.STOPPED
        assert lifecycle.error is None
        assert not lifecycle.is_serving

    def test_bind_failure_does_not_escape(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.ERROR, logger="userfinder.endpoint.lifecycle")
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
            taken.bind((HOST, 0))
            taken.listen()
            port = taken.getsockname()[1]
            lc = ListenerLifecycle(create_app(), host=HOST, port=port)
            lc.start()
            assert not lc.wait_until_started()
        assert lc.error is not None
        assert lc.state == ListenerState.STOPPED
        assert "failed" in caplog.text
        lc.shutdown()


class TestGracefulShutdown:
    def test_in_flight_request_completes(self) -> None:
        sink = SlowSink(delay=0.5)
        lc = ListenerLifecycle(create_app(command_sink=sink), host=HOST, port=0, grace_period=5.0)
        lc.start()
        assert lc.wait_until_started()
        request = InFlightRequest(lc.bound_port)
        request.start()
        assert sink.entered.wait(5.0)

        lc.shutdown()
        request.join(5.0)

        assert request.response is not None
        assert request.response.status_code == 200
        assert sink.commands == [LookupCommand(display_name="alice")]
        assert lc.state == ListenerState.STOPPED

    def test_shutdown_returns_after_grace_period(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.WARNING, logger="userfinder.endpoint.lifecycle")
        grace = 0.5
        sink = SlowSink(delay=3.0)
        lc = ListenerLifecycle(create_app(command_sink=sink), host=HOST, port=0, grace_period=grace)
        lc.start()
        assert lc.wait_until_started()
        InFlightRequest(lc.bound_port).start()
        assert sink.entered.wait(5.0)

        started = time.monotonic()
        lc.shutdown()
        elapsed = time.monotonic() - started

        assert elapsed < grace + 1.5
        assert lc.state == ListenerState.STOPPED
        assert "did not drain" in caplog.text


class TestShutdownSignal:
    @pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
    def test_signal_moves_to_shutting_down(
        self, lifecycle: ListenerLifecycle, signum: int
    ) -> None:
        previous = signal.getsignal(signum)
        lifecycle.start()
        assert lifecycle.wait_until_started()
        send_later(signum)

        assert lifecycle.wait_for_shutdown_signal(timeout=5.0) == signum
        assert lifecycle.state == ListenerState.SHUTTING_DOWN
        assert signal.getsignal(signum) == previous

        lifecycle.shutdown()
        assert lifecycle.state == ListenerState.STOPPED

    def test_wait_times_out_without_signal(self, lifecycle: ListenerLifecycle) -> None:
        lifecycle.start()
        assert lifecycle.wait_for_shutdown_signal(timeout=0.3) is None
        assert lifecycle.state == ListenerState.RUNNING

    def test_sigint_lets_in_flight_request_finish(self) -> None:
        sink = SlowSink(delay=0.5)
        lc = ListenerLifecycle(create_app(command_sink=sink), host=HOST, port=0, grace_period=5.0)
        lc.start()
        assert lc.wait_until_started()
        request = InFlightRequest(lc.bound_port)
        request.start()
        assert sink.entered.wait(5.0)

        send_later(signal.SIGINT)
        assert lc.wait_for_shutdown_signal(timeout=5.0) == signal.SIGINT
        lc.shutdown()
        request.join(5.0)

        assert request.response is not None
        assert request.response.status_code == 200
        assert lc.state == ListenerState.STOPPED

    def test_run_until_signal(self) -> None:
        lc = ListenerLifecycle(create_app(), host=HOST, port=0, grace_period=1.0)
        send_later(signal.SIGTERM, delay=0.5)
        lc.run()
        assert lc.state == ListenerState.STOPPED
        assert lc.error is None
