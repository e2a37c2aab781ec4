#!/usr/bin/env python3
from __future__ import annotations

import functools
import threading
import time
from typing import Any, Dict, Optional

from .compiler import DEFAULT_COMPILER, compile_source
from .console import Console
from .link import DEFAULT_BAUD
from .protocol import ResultFrame
from .session import Session

DEFAULT_RESULT_TICKS = 3000  # 30 s of 10 ms ticks


def _result_dict(result: ResultFrame) -> Dict[str, Any]:
    return {
        "kind": result.kind.name.lower(),
        "exception": result.is_exception,
        "length": len(result.payload),
        "result": result.text.rstrip("\n"),
    }


class DeviceManager:
    def __init__(
        self,
        serial_port: str = "/dev/ttyACM0",
        uart_baud: int = DEFAULT_BAUD,
        compiler: str = DEFAULT_COMPILER,
        noreset: bool = False,
        result_ticks: int = DEFAULT_RESULT_TICKS,
        console: Optional[Console] = None,
        session: Optional[Session] = None,
    ) -> None:
        self.serial_port = serial_port
        self.uart_baud = int(uart_baud)
        self.compiler = compiler
        self.noreset = bool(noreset)
        # bounded so a silent target cannot hold the lock forever
        self.result_ticks = int(result_ticks)

        self.session = session or Session(
            serial_port,
            self.uart_baud,
            console=console,
            compiler=functools.partial(compile_source, compiler=compiler),
        )

        # Critical: must be re-entrant because evaluate_source() calls evaluate_blob()
        self._lock = threading.RLock()

    def _ensure_connected(self) -> None:
        if not self.session.connected:
            self.session.connect(noreset=self.noreset)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "port": self.serial_port,
                "baud": self.uart_baud,
                "connected": self.session.connected,
                "sync_state": self.session.synchronizer.state.value,
                "send_enq": self.session.synchronizer.send_enq,
            }

    def connect(self, noreset: Optional[bool] = None) -> Dict[str, Any]:
        with self._lock:
            t0 = time.time()
            self.session.connect(noreset=self.noreset if noreset is None else noreset)
            return {**self.status(), "seconds": time.time() - t0}

    def reconnect(self) -> Dict[str, Any]:
        """Reopen the port without resetting the target."""
        with self._lock:
            self.session.reconnect()
            return self.status()

    def evaluate_blob(self, blob: bytes, verbose: bool = False) -> Dict[str, Any]:
        with self._lock:
            self._ensure_connected()
            t0 = time.time()
            result = self.session.eval_blob(blob, verbose=verbose, scan_ticks=self.result_ticks)
            return {**_result_dict(result), "blob_bytes": len(blob), "eval_ms": (time.time() - t0) * 1000.0}

    def evaluate_source(self, source: str, verbose: bool = False) -> Dict[str, Any]:
        with self._lock:
            t0 = time.time()
            blob = self.session.compiler(source)
            compile_ms = (time.time() - t0) * 1000.0
            out = self.evaluate_blob(blob, verbose=verbose)
            out["compile_ms"] = compile_ms
            return out

    def close(self) -> None:
        with self._lock:
            self.session.close()
