"""Host-side driver for evaluating mruby bytecode on a serial target.

- link: non-blocking byte reads with tick budgets
- sync: ENQ/ACK handshake
- protocol: framed, ack-gated upload and result retrieval
- session: the operator-facing controller (eval, reconnect, view mode)
"""

from .errors import (
    CompileError,
    HostLinkError,
    LinkError,
    OversizePayload,
    ProtocolError,
    ReadTimeout,
    SyncFailure,
)
from .protocol import FrameHeader, Mode, ResultFrame, ResultKind
from .session import Session

__all__ = [
    "Session",
    "FrameHeader",
    "Mode",
    "ResultFrame",
    "ResultKind",
    "HostLinkError",
    "ReadTimeout",
    "ProtocolError",
    "LinkError",
    "SyncFailure",
    "OversizePayload",
    "CompileError",
]
