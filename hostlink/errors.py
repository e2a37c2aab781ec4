from __future__ import annotations


RECONNECT_ADVICE = "type #reconnect to reconnect to target without reset."


class HostLinkError(Exception):
    """Base class for everything that aborts a link operation."""


class ReadTimeout(HostLinkError, TimeoutError):
    """Tick budget ran out while waiting for a byte."""

    def __init__(self, where: str, ticks: int) -> None:
        super().__init__(f"serial timeout at {where} after {ticks} ticks")
        self.where = where
        self.ticks = ticks


class ProtocolError(HostLinkError):
    """The target answered with an unexpected acknowledge or marker byte."""

    def __init__(self, where: str, got: int | None = None) -> None:
        shown = "none" if got is None else repr(bytes([got]))
        super().__init__(f"protocol error({where}:{shown})")
        self.where = where
        self.got = got


class LinkError(HostLinkError):
    """A write or read failed for a reason other than 'would block'."""


class SyncFailure(HostLinkError):
    """The ENQ/ACK handshake exhausted its attempts."""


class OversizePayload(HostLinkError, ValueError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"payload of {size} bytes exceeds the {limit} byte frame limit")
        self.size = size
        self.limit = limit


class CompileError(HostLinkError):
    """The external compiler rejected the source."""

    def __init__(self, diagnostics: str, returncode: int | None = None) -> None:
        super().__init__(diagnostics.strip() or f"compiler exited with {returncode}")
        self.diagnostics = diagnostics
        self.returncode = returncode
