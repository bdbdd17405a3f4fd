"""Listener lifecycle for the userfinder HTTP server.

Runs a uvicorn server on a background thread so the main thread is free to
wait for SIGINT/SIGTERM, then drains in-flight requests for a bounded grace
period before returning.

State machine::

    created -> running -> shutting_down -> stopped
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from types import FrameType

import uvicorn
from fastapi import FastAPI

from userfinder.domain.models import ListenerState

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 5.0
SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# Extra time allowed after the grace period for uvicorn to finish its own
# shutdown steps before the serving thread is abandoned.
_JOIN_MARGIN = 0.5


class LifecycleError(Exception):
    """Raised when the listener lifecycle is driven out of order."""


class ListenerLifecycle:
    """Owns the HTTP listener: background start, signal wait, graceful stop.

    Example usage::

        lifecycle = ListenerLifecycle(create_app(), port=8080)
        lifecycle.start()
        lifecycle.wait_for_shutdown_signal()
        lifecycle.shutdown()
    """

    def __init__(
        self,
        app: FastAPI,
        host: str = "0.0.0.0",
        port: int = 8080,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self._app = app
        self._host = host
        self._port = port
        self._grace_period = grace_period
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._state = ListenerState.CREATED
        self._state_lock = threading.Lock()
        self._signal_received = threading.Event()
        self._received_signal: int | None = None
        self._error: BaseException | None = None

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def error(self) -> BaseException | None:
        """The bind/serve failure of the background thread, if any."""
        return self._error

    @property
    def is_serving(self) -> bool:
        return (
            self._server is not None
            and self._server.started
            and self._thread is not None
            and self._thread.is_alive()
        )

    @property
    def bound_port(self) -> int | None:
        """Port the listener is actually bound to (differs from 0 once started)."""
        if self._server is None or not self._server.started:
            return None
        for server in getattr(self._server, "servers", []):
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None

    def _set_state(self, state: ListenerState) -> None:
        with self._state_lock:
            if self._state != state:
                logger.debug("Listener state %s -> %s", self._state.value, state.value)
                self._state = state

    # -------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------

    def start(self, port: int | None = None) -> None:
        """Bind the listener and serve on a background thread.

        Returns immediately. Bind and serve failures are logged and kept on
        ``error``; they never reach the calling thread.

        Raises:
            LifecycleError: If the listener was already started.
        """
        if self._state != ListenerState.CREATED:
            raise LifecycleError(f"Cannot start listener in state {self._state.value}")
        if port is not None:
            self._port = port

        config = uvicorn.Config(
            self._app,
            host=self._host,
            port=self._port,
            timeout_graceful_shutdown=self._grace_period,
            log_config=None,
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._serve, name="userfinder-listener", daemon=True
        )
        self._set_state(ListenerState.RUNNING)
        self._thread.start()
        logger.info("Listening on %s:%d", self._host, self._port)

    def _serve(self) -> None:
        assert self._server is not None
        try:
            self._server.run()
        except (Exception, SystemExit) as e:
            # uvicorn reports a failed bind with sys.exit(1)
            self._error = e
            logger.error("Listener on %s:%d failed: %r", self._host, self._port, e)
        finally:
            self._set_state(ListenerState.STOPPED)

    def wait_until_started(self, timeout: float = 5.0) -> bool:
        """Block until the listener accepts connections or its thread dies."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.is_serving:
                return True
            if self._thread is None or not self._thread.is_alive():
                return False
            time.sleep(0.01)
        return self.is_serving

    # -------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        self._received_signal = signum
        self._signal_received.set()

    def wait_for_shutdown_signal(self, timeout: float | None = None) -> int | None:
        """Block until SIGINT or SIGTERM arrives.

        Must be called from the main thread. The previous handlers are
        restored before returning.

        Returns:
            The signal number received, or None if ``timeout`` elapsed.
        """
        self._signal_received.clear()
        previous = {sig: signal.signal(sig, self._handle_signal) for sig in SHUTDOWN_SIGNALS}
        try:
            # Event.wait with no timeout is not interruptible on every
            # platform, so poll in short slices.
            deadline = None if timeout is None else time.monotonic() + timeout
            while not self._signal_received.wait(0.2):
                if deadline is not None and time.monotonic() >= deadline:
                    return None
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        signum = self._received_signal
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        if self._state == ListenerState.RUNNING:
            self._set_state(ListenerState.SHUTTING_DOWN)
        return signum

    # -------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------

    def shutdown(self, grace_period: float | None = None) -> None:
        """Stop accepting connections and drain for at most ``grace_period``.

        Returns once in-flight requests have completed or the grace period
        has expired, whichever comes first. Never raises on timeout.
        """
        if self._state in (ListenerState.CREATED, ListenerState.STOPPED):
            self._set_state(ListenerState.STOPPED)
            return
        grace = self._grace_period if grace_period is None else grace_period
        self._set_state(ListenerState.SHUTTING_DOWN)

        assert self._server is not None and self._thread is not None
        self._server.should_exit = True
        self._thread.join(timeout=grace + _JOIN_MARGIN)
        if self._thread.is_alive():
            self._server.force_exit = True
            logger.warning(
                "Listener did not drain within %.1fs grace period, abandoning in-flight requests",
                grace,
            )
        else:
            logger.info("Listener stopped")
        self._set_state(ListenerState.STOPPED)

    def run(self) -> None:
        """Start, wait for SIGINT/SIGTERM, then shut down gracefully."""
        self.start()
        self.wait_for_shutdown_signal()
        self.shutdown()
