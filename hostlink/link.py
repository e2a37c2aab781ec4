"""Non-blocking serial link to the target.

Every read in the protocol goes through ``Link.read_byte``, which polls the
port one byte at a time and expresses timeouts as a budget of 10 ms ticks
rather than wall-clock deadlines. A budget of 0 polls forever.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import serial

from .errors import LinkError, ReadTimeout

log = logging.getLogger(__name__)

TICK_S = 0.01
DEFAULT_BAUD = 9600


class Link:
    """Owns one open port. Replaced, never reopened, on reconnect."""

    def __init__(self, ser, sleep: Callable[[float], None] = time.sleep) -> None:
        self.ser = ser
        self._sleep = sleep
        self.closed = False

    def read_byte(self, ticks: int) -> Optional[int]:
        remaining = ticks
        while True:
            try:
                data = self.ser.read(1)
            except serial.SerialException as e:
                raise LinkError(f"read error: {e}") from e
            if data:
                return data[0]
            if ticks:
                remaining -= 1
                if remaining <= 0:
                    return None
            self._sleep(TICK_S)

    def expect_byte(self, ticks: int, where: str) -> int:
        c = self.read_byte(ticks)
        if c is None:
            raise ReadTimeout(where, ticks)
        return c

    def try_write(self, data: bytes) -> bool:
        """Write data; False means the port could not accept it right now."""
        try:
            n = self.ser.write(data)
        except serial.SerialTimeoutException:
            return False
        except serial.SerialException as e:
            raise LinkError(f"write error: {e}") from e
        if n is None:
            return True
        if n == 0:
            return False
        if n != len(data):
            raise LinkError(f"short write: {n} of {len(data)} bytes")
        return True

    def write_byte(self, c: int) -> None:
        # would-block retries the same byte
        while not self.try_write(bytes([c])):
            self._sleep(TICK_S)

    def write(self, data: bytes) -> None:
        for c in data:
            self.write_byte(c)

    def flush_input(self) -> None:
        try:
            self.ser.reset_input_buffer()
        except serial.SerialException as e:
            raise LinkError(f"flush error: {e}") from e

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.ser.close()
        except serial.SerialException as e:
            log.warning("error closing port: %s", e)


def open_link(port: str, baud: int = DEFAULT_BAUD, sleep: Callable[[float], None] = time.sleep) -> Link:
    try:
        ser = serial.Serial(port, baud, timeout=0, write_timeout=0)
    except (serial.SerialException, ValueError) as e:
        raise LinkError(f"failed to open port {port}: {e}. Check connectivity.") from e
    link = Link(ser, sleep=sleep)
    link.flush_input()
    log.info("opened %s at %d baud", port, baud)
    return link
