import errno
import os

import pytest

from usbterm.dispatcher import InputDispatcher, fd_reader


class Sink:
    def __init__(self, accept=True):
        self.accept = accept
        self.sent = []

    def __call__(self, data):
        if self.accept:
            self.sent.append(data)
        return self.accept

    @property
    def data(self):
        return b"".join(self.sent)


def feed_all(dispatcher, chunks):
    for chunk in chunks:
        if not dispatcher.feed(chunk):
            return False
    return True


def test_plain_bytes_are_forwarded_in_order():
    sink = Sink()
    d = InputDispatcher(sink)
    assert feed_all(d, [b"hello ", b"world\r"])
    assert sink.data == b"hello world\r"


def test_ctrl_x_q_ends_session_without_forwarding():
    sink = Sink()
    d = InputDispatcher(sink)
    assert d.feed(b"\x18q") is False
    assert sink.data == b""


def test_ctrl_x_q_after_payload_keeps_payload():
    sink = Sink()
    d = InputDispatcher(sink)
    assert d.feed(b"ls\x18q") is False
    assert sink.data == b"ls"


def test_double_ctrl_x_then_q_ends_session():
    sink = Sink()
    d = InputDispatcher(sink)
    assert d.feed(b"\x18\x18q") is False
    # The first Ctrl-X is ordinary payload.
    assert sink.data == b"\x18"


def test_ctrl_x_and_q_in_separate_reads():
    sink = Sink()
    d = InputDispatcher(sink)
    assert d.feed(b"\x18") is True
    assert d.feed(b"q") is False
    # Already sent by the time the q arrives.
    assert sink.data == b"\x18"


def test_other_byte_then_q_is_payload():
    sink = Sink()
    d = InputDispatcher(sink)
    assert feed_all(d, [b"x", b"q"])
    assert sink.data == b"xq"


def test_ctrl_x_then_other_byte_is_payload():
    sink = Sink()
    d = InputDispatcher(sink)
    assert d.feed(b"\x18a\x18") is True
    assert sink.data == b"\x18a\x18"


@pytest.mark.parametrize("forward_interrupt", [False, True])
def test_interrupt_byte(forward_interrupt):
    sink = Sink()
    d = InputDispatcher(sink, forward_interrupt=forward_interrupt)
    keep_going = d.feed(b"ab\x03cd")
    if forward_interrupt:
        assert keep_going is True
        assert sink.data == b"ab\x03cd"
    else:
        assert keep_going is False
        assert sink.data == b"ab"


def test_escape_still_works_with_interrupt_forwarding():
    sink = Sink()
    d = InputDispatcher(sink, forward_interrupt=True)
    assert d.feed(b"\x03\x18q") is False
    assert sink.data == b"\x03"


def test_prev_tracks_last_byte():
    d = InputDispatcher(Sink())
    d.feed(b"abc")
    assert d.prev == ord("c")
    d.feed(b"\x18")
    assert d.prev == 0x18


def test_dropped_bytes_do_not_stop_the_session():
    sink = Sink(accept=False)
    d = InputDispatcher(sink)
    assert d.feed(b"typed while away") is True
    assert sink.sent == []


def test_run_stops_on_escape():
    sink = Sink()
    chunks = iter([b"one", b"two\x18", b"q", b"never"])
    InputDispatcher(sink).run(lambda: next(chunks))
    assert sink.data == b"onetwo\x18"


def test_run_stops_at_end_of_input():
    sink = Sink()
    chunks = iter([b"abc", b""])
    InputDispatcher(sink).run(lambda: next(chunks))
    assert sink.data == b"abc"


def test_fd_reader_treats_hangup_as_end_of_input(monkeypatch):
    def hung_up(fd, size):
        raise OSError(errno.EIO, "Input/output error")

    monkeypatch.setattr(os, "read", hung_up)
    sink = Sink()
    InputDispatcher(sink).run(fd_reader(0))
    assert sink.sent == []


def test_fd_reader_other_errors_propagate(monkeypatch):
    def bad_fd(fd, size):
        raise OSError(errno.EBADF, "Bad file descriptor")

    monkeypatch.setattr(os, "read", bad_fd)
    with pytest.raises(OSError):
        fd_reader(0)()
