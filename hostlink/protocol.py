"""Framed transfer protocol spoken by the target's host-based REPL firmware.

Host -> Target
  ENQ (0x05)
      Handshake probe; target answers ACK (0x06) once ready.

  [mode][len_hi][len_lo] + bytecode
      mode is 0x01 (normal) or 0x02 (verbose). The target answers '!' to
      accept the header, then '#' after every group of up to 100 payload bytes.

Target -> Host
  [marker][len_hi][len_lo] + result text
      marker is 0x01 for a value and 0x02 for an exception. The host answers
      '!' once it has the length, then '#' after every group of up to 100
      payload bytes.

Anything the target prints outside a frame is console output, so the reader
scans for the start-of-frame marker instead of assuming alignment.
"""

from __future__ import annotations

import enum
import logging
import struct
from dataclasses import dataclass

from .console import Console
from .errors import OversizePayload, ProtocolError
from .link import Link

log = logging.getLogger(__name__)

ENQ = 0x05
ACK = 0x06
HEADER_ACK = ord("!")
CHUNK_ACK = ord("#")

CHUNK_SIZE = 100
MAX_PAYLOAD = 0xFFFF
HEADER_RETRIES = 5
BYTE_TICKS = 20

HEADER_FORMAT = ">BH"  # mode/marker, length


class Mode(enum.IntEnum):
    NORMAL = 0x01
    VERBOSE = 0x02


class ResultKind(enum.IntEnum):
    VALUE = 0x01
    EXCEPTION = 0x02


@dataclass(frozen=True)
class FrameHeader:
    mode: Mode
    length: int

    def __post_init__(self) -> None:
        if not 0 <= self.length <= MAX_PAYLOAD:
            raise OversizePayload(self.length, MAX_PAYLOAD)

    def to_bytes(self) -> bytes:
        return struct.pack(HEADER_FORMAT, int(self.mode), self.length)


@dataclass(frozen=True)
class ResultFrame:
    kind: ResultKind
    payload: bytes

    @property
    def is_exception(self) -> bool:
        return self.kind == ResultKind.EXCEPTION

    @property
    def text(self) -> str:
        # the target sends C strings; anything after a NUL is padding
        return self.payload.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def _chunks(n: int):
    """Yield the size of each flow-control group for an n byte payload."""
    while n > 0:
        step = min(CHUNK_SIZE, n)
        yield step
        n -= step


def write_frame(link: Link, payload: bytes, verbose: bool = False) -> None:
    """Send one bytecode frame, gated by the target's '!' and '#' acks."""
    header = FrameHeader(Mode.VERBOSE if verbose else Mode.NORMAL, len(payload))
    raw_header = header.to_bytes()

    ack = None
    for attempt in range(HEADER_RETRIES):
        link.flush_input()
        if not link.try_write(raw_header):
            log.warning("header write not accepted (attempt %d)", attempt + 1)
            continue
        ack = link.read_byte(BYTE_TICKS)
        if ack == HEADER_ACK:
            break
        log.warning("no header ack (attempt %d, got %r)", attempt + 1, ack)
    if ack != HEADER_ACK:
        raise ProtocolError("first ack", ack)

    sent = 0
    for step in _chunks(len(payload)):
        link.write(payload[sent:sent + step])
        sent += step
        ack = link.read_byte(BYTE_TICKS)
        if ack != CHUNK_ACK:
            raise ProtocolError("normal ack", ack)
    log.debug("sent %d byte frame (mode=%s)", sent, header.mode.name)


def read_result(link: Link, console: Console, scan_ticks: int = 0) -> ResultFrame:
    """Wait for the result frame, echoing target output that precedes it."""
    while True:
        c = link.expect_byte(scan_ticks, "result.marker")
        if c in (ResultKind.VALUE, ResultKind.EXCEPTION):
            kind = ResultKind(c)
            break
        console.echo_byte(c)

    len_h = link.expect_byte(BYTE_TICKS, "result.len_hi")
    len_l = link.expect_byte(BYTE_TICKS, "result.len_lo")
    link.write_byte(HEADER_ACK)

    length = (len_h << 8) | len_l
    payload = bytearray()
    for step in _chunks(length):
        for _ in range(step):
            payload.append(link.expect_byte(BYTE_TICKS, "result.payload"))
        link.write_byte(CHUNK_ACK)

    log.debug("received %s frame, len=%d", kind.name, length)
    return ResultFrame(kind, bytes(payload))
