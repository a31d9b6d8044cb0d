"""Device side of the session: one open port, reopened whenever it fails.

The reader thread owns the reopen. While it is reopening, the state is
RECONNECTING and writes from the input side are dropped, not queued. Handle
and state change together under one lock so a write never lands on a handle
that is being replaced.
"""

from __future__ import annotations

import enum
import sys
import threading
from functools import partial
from typing import BinaryIO, Callable, Optional

import serial

from .errors import InitialOpenFailure
from .retry import RetriesExhausted, RetryPolicy

READ_SIZE = 1000
READ_TIMEOUT_S = 1.0
# A device that stops draining input must not wedge the keyboard loop.
WRITE_TIMEOUT_S = 0.5
RETRY_DELAY_S = 0.1
# Boards that were just plugged in can take a few seconds to settle.
INITIAL_OPEN_ATTEMPTS = 50

_PORT_ERRORS = (serial.SerialException, OSError)


class PumpState(enum.Enum):
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


def serial_opener(
    baud: int,
    read_timeout_s: float = READ_TIMEOUT_S,
    write_timeout_s: float = WRITE_TIMEOUT_S,
) -> Callable[[str], "serial.Serial"]:
    return partial(serial.Serial, baudrate=baud, timeout=read_timeout_s, write_timeout=write_timeout_s)


class ReconnectingPortPump:
    def __init__(
        self,
        port: str,
        opener: Callable[[str], "serial.Serial"],
        output: Optional[BinaryIO] = None,
        initial_retry: Optional[RetryPolicy] = None,
        reconnect_retry: Optional[RetryPolicy] = None,
    ):
        self.port = port
        self._opener = opener
        self._output = output if output is not None else sys.stdout.buffer
        self._initial_retry = initial_retry or RetryPolicy(
            delay_s=RETRY_DELAY_S, attempts=INITIAL_OPEN_ATTEMPTS, retry_on=_PORT_ERRORS
        )
        self._reconnect_retry = reconnect_retry or RetryPolicy(delay_s=RETRY_DELAY_S, retry_on=_PORT_ERRORS)

        self._lock = threading.Lock()
        self._handle: Optional["serial.Serial"] = None
        self._state = PumpState.CONNECTED
        self._closed = False
        self._thread: Optional[threading.Thread] = None
        self.reconnects = 0

    @property
    def state(self) -> PumpState:
        with self._lock:
            return self._state

    @property
    def reconnecting(self) -> bool:
        return self.state is PumpState.RECONNECTING

    def open(self) -> None:
        try:
            handle = self._initial_retry.run(partial(self._opener, self.port))
        except RetriesExhausted as e:
            raise InitialOpenFailure(self.port, e.attempts, e.last_error) from e
        with self._lock:
            self._handle = handle
            self._state = PumpState.CONNECTED

    def start(self) -> threading.Thread:
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, name="usbterm-reader", daemon=True)
            self._thread.start()
        return self._thread

    def _run(self) -> None:
        while not self._closed:
            self.step()

    def step(self) -> int:
        """One read-and-forward pass. Returns the number of bytes forwarded."""
        handle = self._handle
        if handle is None:
            return 0
        try:
            data = handle.read(READ_SIZE)
        except _PORT_ERRORS:
            self._reconnect(handle)
            return 0

        # Empty read is the timeout expiring.
        if not data:
            return 0
        self._output.write(data)
        self._output.flush()
        return len(data)

    def _reconnect(self, failed: "serial.Serial") -> None:
        with self._lock:
            if self._closed or self._handle is not failed:
                return
            self._state = PumpState.RECONNECTING
            self._handle = None
        try:
            failed.close()
        except _PORT_ERRORS:
            pass

        handle = self._reconnect_retry.run(partial(self._opener, self.port))

        with self._lock:
            if self._closed:
                handle.close()
                return
            self._handle = handle
            self._state = PumpState.CONNECTED
            self.reconnects += 1

    def write(self, data: bytes) -> bool:
        """Send to the device, or drop if it is currently being reopened."""
        if not data:
            return True
        with self._lock:
            if self._state is PumpState.RECONNECTING or self._handle is None:
                return False
            try:
                self._handle.write(data)
            except _PORT_ERRORS:
                # SerialTimeoutException included: a stalled device loses the bytes.
                # The reader notices the dead port on its next read and reopens it.
                return False
            return True

    def close(self) -> None:
        with self._lock:
            self._closed = True
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
