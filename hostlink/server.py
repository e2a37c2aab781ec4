#!/usr/bin/env python3
"""
hostlink HTTP server.

The server exposes the target session to tools that cannot hold the serial
port themselves:
- POST /v2/eval       -> JSON response (result kind and text)
- POST /v2/sync       -> open the port and run the ENQ/ACK handshake
- POST /v2/reconnect  -> reopen the port without resetting the target
- GET  /health        -> link status

Request format for /v2/eval (multipart/form-data)
- source   optional file  program.rb   (compiled on the host with mrbc)
- blob     optional file  program.mrb  (already compiled irep)
- verbose  optional form  "1" to request a verbose frame
A target that accepts the upload but sends no result within RESULT_TICKS
(10 ms each) gets a 502 so /v2/reconnect stays reachable.
Exactly one of source or blob is required.

Run with: uvicorn hostlink.server:app --port 8080
"""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from .device_manager import DeviceManager
from .errors import RECONNECT_ADVICE, CompileError, HostLinkError, LinkError, OversizePayload, SyncFailure

SERIAL_PORT = os.getenv("SERIAL_PORT", "/dev/ttyACM0")
UART_BAUD = int(os.getenv("UART_BAUD", "9600"))
MRBC = os.getenv("MRBC", "mrbc")
NORESET = os.getenv("NORESET", "0") not in ("", "0", "false", "no")
RESULT_TICKS = int(os.getenv("RESULT_TICKS", "3000"))

app = FastAPI(title="hostlink", version="1.0.0")
mgr = DeviceManager(serial_port=SERIAL_PORT, uart_baud=UART_BAUD, compiler=MRBC, noreset=NORESET, result_ticks=RESULT_TICKS)


def _http_error(e: HostLinkError) -> HTTPException:
    if isinstance(e, (CompileError, OversizePayload)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, SyncFailure):
        return HTTPException(status_code=504, detail=f"{e}. Check connectivity.")
    if isinstance(e, LinkError) and not mgr.session.connected:
        return HTTPException(status_code=503, detail=f"{e}. Check connectivity.")
    return HTTPException(status_code=502, detail=f"{e}. {RECONNECT_ADVICE}")


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True, **mgr.status()}


@app.post("/v2/sync")
def v2_sync() -> Dict[str, Any]:
    try:
        return {"ok": True, **mgr.connect()}
    except HostLinkError as e:
        raise _http_error(e)


@app.post("/v2/reconnect")
def v2_reconnect() -> Dict[str, Any]:
    try:
        return {"ok": True, **mgr.reconnect()}
    except HostLinkError as e:
        raise _http_error(e)


@app.post("/v2/eval")
def v2_eval(
    source: Optional[UploadFile] = File(None),
    blob: Optional[UploadFile] = File(None),
    verbose: bool = Form(False),
) -> JSONResponse:
    if (source is None) == (blob is None):
        raise HTTPException(status_code=400, detail="provide exactly one of source or blob")

    try:
        if source is not None:
            text = source.file.read().decode("utf-8", errors="replace")
            out = mgr.evaluate_source(text, verbose=verbose)
        else:
            out = mgr.evaluate_blob(blob.file.read(), verbose=verbose)
    except HostLinkError as e:
        raise _http_error(e)

    return JSONResponse({"ok": True, **out})
