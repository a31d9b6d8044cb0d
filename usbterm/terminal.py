"""Raw mode on the controlling terminal and the one teardown that undoes it.

The teardown runs from two places: the end of the input loop and the SIGINT
handler. Whichever comes first does the work; the other is a no-op.
"""

from __future__ import annotations

import os
import signal
import sys
import termios
import threading
import tty
from typing import Any, Callable, List, Optional, Set

from .errors import TerminalModeError


class TerminalSession:
    def __init__(self, fd: Optional[int] = None):
        self.fd = sys.stdin.fileno() if fd is None else fd
        self._saved: Optional[List[Any]] = None
        self._lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self._saved is not None

    def enter(self) -> List[Any]:
        with self._lock:
            if self._saved is not None:
                return self._saved
            try:
                saved = termios.tcgetattr(self.fd)
                tty.setraw(self.fd)
            except (termios.error, OSError) as e:
                raise TerminalModeError(f"could not switch terminal to raw mode: {e}") from e
            self._saved = saved
            return saved

    def restore(self) -> bool:
        """Put the saved mode back. Returns False if there was nothing to do."""
        with self._lock:
            saved = self._saved
            if saved is None:
                return False
            try:
                termios.tcsetattr(self.fd, termios.TCSADRAIN, saved)
            except (termios.error, OSError) as e:
                raise TerminalModeError(f"could not restore terminal mode: {e}") from e
            # Only forget the saved mode once it is back in place.
            self._saved = None
            return True

    def __enter__(self) -> "TerminalSession":
        self.enter()
        return self

    def __exit__(self, *exc) -> None:
        self.restore()


class Teardown:
    def __init__(self, *callbacks: Callable[[], Any]):
        self._callbacks = list(callbacks)
        self._finished: Set[int] = set()
        self._lock = threading.RLock()

    @property
    def done(self) -> bool:
        return len(self._finished) == len(self._callbacks)

    def add(self, callback: Callable[[], Any]) -> None:
        self._callbacks.append(callback)

    def run(self) -> bool:
        """Run every callback that has not finished yet.

        A callback counts as finished once it returns or raises. A second run
        entered from inside a callback (SIGINT landing mid-teardown on the
        same thread) repeats the unfinished ones instead of skipping them, so
        they must be idempotent. Returns False if there was nothing left.
        """
        ran = False
        # Every callback gets its turn; the first failure is re-raised after.
        first_err: Optional[BaseException] = None
        with self._lock:
            for i, cb in enumerate(self._callbacks):
                if i in self._finished:
                    continue
                ran = True
                try:
                    cb()
                except Exception as e:
                    if first_err is None:
                        first_err = e
                finally:
                    self._finished.add(i)
        if first_err is not None:
            raise first_err
        return ran


def install_interrupt_handler(
    teardown: Teardown,
    exit: Callable[[int], Any] = os._exit,
    signum: int = signal.SIGINT,
):
    """Make SIGINT restore the terminal and end the process on the spot.

    Neither the reader thread nor the input loop is waited for. Returns the
    previous handler.
    """

    def _on_interrupt(_signum, _frame):
        try:
            teardown.run()
        finally:
            try:
                sys.stdout.flush()
            finally:
                exit(0)

    return signal.signal(signum, _on_interrupt)
