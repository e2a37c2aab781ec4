from __future__ import annotations

import codecs
import sys
from typing import Optional, TextIO


class Console:
    """Operator-facing output. Target bytes arrive one at a time, so they are
    pushed through an incremental decoder to keep multi-byte text intact."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def echo_byte(self, c: int) -> None:
        text = self._decoder.decode(bytes([c]))
        if text:
            self.stream.write(text)
            self.stream.flush()

    def print(self, msg: str = "", end: str = "\n") -> None:
        pending = self._decoder.decode(b"", final=True)
        self._decoder.reset()
        self.stream.write(pending + msg + end)
        self.stream.flush()
