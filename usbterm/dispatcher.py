"""Keyboard side of the session.

Raw mode turns off the terminal's own Ctrl-C handling, so the bytes are
inspected here:

  0x03       Ctrl-C, ends the session (unless forwarding it is enabled)
  0x18 'q'   Ctrl-X then q, ends the session in all cases

Everything else is handed to the sink in arrival order.
"""

from __future__ import annotations

import errno
import os
from typing import Callable

INTERRUPT = 0x03
ESCAPE_PREFIX = 0x18
ESCAPE_QUIT = ord("q")

READ_SIZE = 1000


class InputDispatcher:
    def __init__(self, sink: Callable[[bytes], bool], forward_interrupt: bool = False):
        self.sink = sink
        self.forward_interrupt = forward_interrupt
        self.prev = 0

    def feed(self, chunk: bytes) -> bool:
        """Process one chunk. Returns False once the session should end."""
        out = bytearray()
        for b in chunk:
            if b == INTERRUPT and not self.forward_interrupt:
                self.prev = b
                self._flush(out)
                return False
            if self.prev == ESCAPE_PREFIX and b == ESCAPE_QUIT:
                self.prev = b
                # Hold back the prefix too if it has not left yet.
                if out and out[-1] == ESCAPE_PREFIX:
                    del out[-1]
                self._flush(out)
                return False
            out.append(b)
            self.prev = b
        self._flush(out)
        return True

    def _flush(self, out: bytearray) -> None:
        if out:
            self.sink(bytes(out))

    def run(self, read: Callable[[], bytes]) -> None:
        while True:
            chunk = read()
            if not chunk:
                return
            if not self.feed(chunk):
                return


def fd_reader(fd: int, size: int = READ_SIZE) -> Callable[[], bytes]:
    def read() -> bytes:
        try:
            return os.read(fd, size)
        except OSError as e:
            # Terminal hung up.
            if e.errno == errno.EIO:
                return b""
            raise

    return read
