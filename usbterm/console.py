"""Tagged status lines, kept apart from the raw device byte stream.

Device bytes go to ``sys.stdout.buffer`` untouched; everything usbterm says
itself goes through these helpers so it is easy to tell the two apart.
"""

from __future__ import annotations

import sys
from typing import TextIO


def _emit(stream: TextIO, text: str) -> None:
    # In raw mode a bare "\n" does not return the carriage.
    stream.write(text.replace("\r\n", "\n").replace("\n", "\r\n"))
    stream.flush()


def info(msg: str, stream: TextIO | None = None) -> None:
    _emit(stream or sys.stdout, f"[info] {msg}\n")


def warn(msg: str, stream: TextIO | None = None) -> None:
    _emit(stream or sys.stderr, f"[warn] {msg}\n")


def error(msg: str, stream: TextIO | None = None) -> None:
    _emit(stream or sys.stderr, f"ERROR: {msg}\n")
