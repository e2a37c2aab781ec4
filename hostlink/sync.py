from __future__ import annotations

import enum
import logging
from typing import Callable

from .console import Console
from .errors import SyncFailure
from .link import Link
from .protocol import ACK, BYTE_TICKS, ENQ

log = logging.getLogger(__name__)

SYNC_ATTEMPTS = 100


class SyncState(enum.Enum):
    IDLE = "idle"
    PROBING = "probing"
    SYNCED = "synced"
    FAILED = "failed"


class LinkSynchronizer:
    """ENQ/ACK handshake with the target.

    Some bootloaders (chipKIT Max32) enter update mode as soon as they receive
    any byte. Such a target shows up as a port that will not accept the first
    ENQ; the port is then reopened to reset the board and no ENQ is sent again
    for the rest of the session.
    """

    def __init__(self, reconnect: Callable[[], Link], console: Console) -> None:
        self._reconnect = reconnect
        self.console = console
        self.send_enq = True
        self.state = SyncState.IDLE

    def run(self, link: Link) -> Link:
        """Return the link the handshake finished on (it may have been replaced)."""
        self.state = SyncState.PROBING
        for attempt in range(SYNC_ATTEMPTS):
            if self.send_enq and not link.try_write(bytes([ENQ])):
                log.warning("ENQ not accepted, assuming a target that resets on first byte")
                self.console.print("  chipKIT detected. reopening port..")
                link = self._reconnect()
                self.send_enq = False

            while True:
                c = link.read_byte(BYTE_TICKS)
                if c is None:
                    break
                if c == ACK:
                    self.state = SyncState.SYNCED
                    log.info("target synced after %d attempt(s)", attempt + 1)
                    return link
                self.console.echo_byte(c)

        self.state = SyncState.FAILED
        self.console.print("sync error")
        raise SyncFailure(f"no ACK from target after {SYNC_ATTEMPTS} attempts")
