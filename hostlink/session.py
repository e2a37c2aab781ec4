from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .compiler import compile_source
from .console import Console
from .errors import RECONNECT_ADVICE, CompileError, HostLinkError, LinkError, OversizePayload, SyncFailure
from .interrupt import InterruptWatcher
from .link import DEFAULT_BAUD, Link, open_link
from .protocol import MAX_PAYLOAD, ResultFrame, read_result, write_frame
from .sync import LinkSynchronizer

log = logging.getLogger(__name__)

Compiler = Callable[[str], bytes]
Opener = Callable[[str, int], Link]

VIEW_POLL_TICKS = 2


class Session:
    """One conversation with one target over one port.

    The session exclusively owns the link. ``reconnect`` swaps in a fresh
    link, which invalidates anything still holding the old one.
    """

    def __init__(
        self,
        port: str,
        baud: int = DEFAULT_BAUD,
        console: Optional[Console] = None,
        compiler: Compiler = compile_source,
        opener: Opener = open_link,
    ) -> None:
        self.port = port
        self.baud = int(baud)
        self.console = console or Console()
        self.compiler = compiler
        self._opener = opener
        self.link: Optional[Link] = None
        self.synchronizer = LinkSynchronizer(self.reconnect, self.console)

    @property
    def connected(self) -> bool:
        return self.link is not None and not self.link.closed

    def _require_link(self) -> Link:
        if not self.connected:
            raise LinkError(f"not connected to {self.port}")
        return self.link

    def reconnect(self) -> Link:
        if self.link is not None:
            self.link.close()
            self.link = None
        self.link = self._opener(self.port, self.baud)
        return self.link

    def connect(self, noreset: bool = False) -> None:
        """Open the port and, unless noreset, wait for the target's ACK."""
        self.reconnect()
        if noreset:
            self.console.print("continue without reset. Note:local variables are not restored.")
        else:
            self.console.print(f"  waiting for target on {self.port}...")
            try:
                self.link = self.synchronizer.run(self.link)
            except SyncFailure:
                self.console.print("\nfailed to open communication with target. Check connectivity.")
                raise
        self.console.print("target is ready.")

    def eval_blob(self, blob: bytes, verbose: bool = False, scan_ticks: int = 0) -> ResultFrame:
        if len(blob) > MAX_PAYLOAD:
            raise OversizePayload(len(blob), MAX_PAYLOAD)
        link = self._require_link()
        write_frame(link, blob, verbose=verbose)
        return read_result(link, self.console, scan_ticks=scan_ticks)

    def remote_eval(self, source: str, verbose: bool = False) -> Optional[ResultFrame]:
        """Compile, upload and evaluate source, reporting the outcome."""
        try:
            blob = self.compiler(source)
        except CompileError as e:
            self.console.print(f"failed to dump bytecode. err = {e}")
            return None
        if len(blob) > MAX_PAYLOAD:
            self.console.print(f"failed to send bytecode: {OversizePayload(len(blob), MAX_PAYLOAD)}")
            return None

        try:
            link = self._require_link()
            write_frame(link, blob, verbose=verbose)
        except HostLinkError as e:
            log.error("transmit failed: %s", e)
            self.console.print("failed to send bytecode.")
            self.console.print(RECONNECT_ADVICE)
            return None

        try:
            result = read_result(link, self.console)
        except HostLinkError as e:
            log.error("receive failed: %s", e)
            self.console.print("failed to get result.")
            self.console.print(RECONNECT_ADVICE)
            return None

        log.debug("(host:)receiving result from target...done. len=%d", len(result.payload))
        text = result.text.rstrip("\n")
        if result.is_exception:
            self.console.print(f"   {text}")
        else:
            self.console.print(f" => {text}")
        return result

    def enter_view_mode(self, token: Optional[threading.Event] = None) -> None:
        """Forward target output until the token is set (Ctrl-C by default)."""
        link = self._require_link()
        self.console.print("...Entering view mode.. press Ctrl-C to back to REPL...")
        with InterruptWatcher(token) as cancel:
            while not cancel.is_set():
                c = link.read_byte(VIEW_POLL_TICKS)
                if c is not None:
                    self.console.echo_byte(c)
        self.console.print("\n...get back to REPL")

    def close(self) -> None:
        if self.link is not None:
            self.link.close()
            self.link = None

