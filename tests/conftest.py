from __future__ import annotations

import io
import struct

import pytest
import serial

from hostlink.console import Console
from hostlink.link import Link


class FakeSerial:
    """Stands in for a non-blocking pyserial port.

    ``write_script`` holds one action per write call: None writes normally,
    "block" raises the pyserial write timeout, an exception instance is raised.
    """

    def __init__(self, rx: bytes = b"", write_script=None) -> None:
        self.rx = bytearray(rx)
        self.tx = bytearray()
        self.write_script = list(write_script or [])
        self.flushes = 0
        self.closed = False
        self.reads = 0

    def read(self, n: int = 1) -> bytes:
        self.reads += 1
        if not self.rx:
            return b""
        out = bytes(self.rx[:n])
        del self.rx[:n]
        return out

    def write(self, data: bytes) -> int:
        if self.write_script:
            action = self.write_script.pop(0)
            if action == "block":
                raise serial.SerialTimeoutException("Write timeout")
            if isinstance(action, Exception):
                raise action
        self.tx += data
        for c in bytes(data):
            self.on_byte(c)
        return len(data)

    def on_byte(self, c: int) -> None:
        pass

    def reset_input_buffer(self) -> None:
        self.flushes += 1
        self.rx.clear()

    def close(self) -> None:
        self.closed = True


def result_frame(kind: int, payload: bytes) -> bytes:
    return struct.pack(">BH", kind, len(payload)) + payload


class CooperativeTarget(FakeSerial):
    """A well-behaved target: answers ENQ, acks the header and every 100 byte
    group, then queues ``reply(blob)`` and records the host's acks."""

    def __init__(self, reply=None, drop_headers: int = 0, chunk_ack: bytes = b"#", **kw) -> None:
        super().__init__(**kw)
        self.reply = reply or (lambda blob: result_frame(0x01, b"nil"))
        self.drop_headers = drop_headers
        self.chunk_ack = chunk_ack
        self.state = "idle"
        self.header = bytearray()
        self.expected = 0
        self.received = bytearray()
        self.headers_seen = []
        self.chunk_acks = 0
        self.host_acks = bytearray()
        self.enqs = 0

    def _finish(self) -> None:
        self.rx += self.reply(bytes(self.received))
        self.state = "result"

    def on_byte(self, c: int) -> None:
        if self.state == "idle":
            if c == 0x05 and not self.header:
                self.enqs += 1
                self.rx += b"\x06"
                return
            self.header.append(c)
            if len(self.header) < 3:
                return
            self.headers_seen.append(bytes(self.header))
            mode, length = struct.unpack(">BH", bytes(self.header))
            self.header.clear()
            if self.drop_headers:
                self.drop_headers -= 1
                return
            self.mode = mode
            self.expected = length
            self.received = bytearray()
            self.rx += b"!"
            if length == 0:
                self._finish()
            else:
                self.state = "payload"
        elif self.state == "payload":
            self.received.append(c)
            n = len(self.received)
            if n % 100 == 0 or n == self.expected:
                self.rx += self.chunk_ack
                self.chunk_acks += 1
            if n == self.expected:
                self._finish()
        else:
            self.host_acks.append(c)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_link(sleeps):
    def make(ser) -> Link:
        return Link(ser, sleep=sleeps.append)
    return make


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def console(out):
    return Console(out)


@pytest.fixture
def opener(make_link):
    """Opener for Session that hands out the given ports in order."""
    class Opener:
        def __init__(self) -> None:
            self.ports = []
            self.calls = []

        def __call__(self, port: str, baud: int) -> Link:
            self.calls.append((port, baud))
            return make_link(self.ports.pop(0))

    return Opener()
