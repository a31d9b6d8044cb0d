from __future__ import annotations

import io
import json
import threading
import time
from collections import deque
from pathlib import Path

import pytest
import serial


class FakeSerial:
    """Stands in for serial.Serial: scripted reads, recorded writes."""

    def __init__(self, port, reads=(), idle_s=0.0):
        self.port = port
        self.reads = deque(reads)
        self.written = bytearray()
        self.closed = False
        self.idle_s = idle_s

    def read(self, size=1):
        if self.closed:
            raise serial.SerialException("port is closed")
        if not self.reads:
            if self.idle_s:
                time.sleep(self.idle_s)
            return b""
        item = self.reads.popleft()
        if isinstance(item, BaseException):
            raise item
        return item[:size]

    def write(self, data):
        if self.closed:
            raise serial.SerialException("port is closed")
        self.written += data
        return len(data)

    def close(self):
        self.closed = True


class FakeOpener:
    """Fails ``failures`` times, then hands out the next scripted FakeSerial."""

    def __init__(self, handles, failures=0):
        self.handles = deque(handles)
        self.failures = failures
        self.calls = []
        self.lock = threading.Lock()

    def __call__(self, port):
        with self.lock:
            self.calls.append(port)
            if self.failures:
                self.failures -= 1
                raise serial.SerialException(f"could not open port {port}: [Errno 2] No such file or directory")
            return self.handles.popleft()


@pytest.fixture
def output():
    return io.BytesIO()


@pytest.fixture
def targets_root(tmp_path: Path) -> Path:
    d = tmp_path / "targets"
    d.mkdir()
    (d / "arduino.json").write_text(json.dumps({"serial-port": ["acm:2341:0043", "acm:2341:0001"]}))
    (d / "pico.json").write_text(json.dumps({"serial-port": ["usb:2e8a:000a"]}))
    (d / "cortex-m.json").write_text(json.dumps({"llvm-target": "thumbv7m-none-eabi"}))
    return tmp_path


@pytest.fixture
def fake_serial():
    return FakeSerial


@pytest.fixture
def fake_opener():
    return FakeOpener


@pytest.fixture
def sleeps():
    return []
