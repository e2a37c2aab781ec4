from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from hostlink import server
from hostlink.device_manager import DeviceManager
from hostlink.errors import CompileError
from hostlink.session import Session

from conftest import CooperativeTarget, FakeSerial, result_frame


def _compile(src: str) -> bytes:
    if "syntax" in src:
        raise CompileError("syntax error", returncode=1)
    return src.encode()


@pytest.fixture
def target():
    return CooperativeTarget(reply=lambda blob: result_frame(0x01, b"=" + blob + b"\n"))


@pytest.fixture
def client(monkeypatch, opener, console, target):
    opener.ports.append(target)
    session = Session("/dev/ttyTEST", 9600, console=console, compiler=_compile, opener=opener)
    mgr = DeviceManager(serial_port="/dev/ttyTEST", uart_baud=9600, session=session)
    monkeypatch.setattr(server, "mgr", mgr)
    return TestClient(server.app)


def test_health_before_connect(client):
    r = client.get("/health")
    assert r.status_code == 200
    js = r.json()
    assert js["ok"] is True
    assert js["connected"] is False
    assert js["sync_state"] == "idle"


def test_sync(client, target):
    r = client.post("/v2/sync")
    assert r.status_code == 200
    assert r.json()["sync_state"] == "synced"
    assert target.enqs == 1


def test_eval_blob_connects_lazily(client, target):
    r = client.post("/v2/eval", files={"blob": ("p.mrb", b"RITE", "application/octet-stream")})
    assert r.status_code == 200
    js = r.json()
    assert js["kind"] == "value"
    assert js["result"] == "=RITE"
    assert js["blob_bytes"] == 4
    assert bytes(target.received) == b"RITE"


def test_eval_source(client, target):
    r = client.post("/v2/eval", files={"source": ("p.rb", b"p 42", "text/plain")}, data={"verbose": "1"})
    assert r.status_code == 200
    assert r.json()["result"] == "=p 42"
    assert target.mode == 0x02


def test_eval_needs_exactly_one_input(client):
    assert client.post("/v2/eval").status_code == 400
    files = {
        "blob": ("p.mrb", b"RITE", "application/octet-stream"),
        "source": ("p.rb", b"p 1", "text/plain"),
    }
    assert client.post("/v2/eval", files=files).status_code == 400


def test_compile_error_is_400(client):
    r = client.post("/v2/eval", files={"source": ("p.rb", b"syntax", "text/plain")})
    assert r.status_code == 400
    assert "syntax error" in r.json()["detail"]


def test_oversize_blob_is_400(client, target):
    r = client.post("/v2/eval", files={"blob": ("p.mrb", b"\0" * 65536, "application/octet-stream")})
    assert r.status_code == 400
    assert bytes(target.received) == b""


def test_protocol_failure_is_502_with_advice(client, target):
    target.drop_headers = 5
    r = client.post("/v2/eval", files={"blob": ("p.mrb", b"RITE", "application/octet-stream")})
    assert r.status_code == 502
    assert "#reconnect" in r.json()["detail"]


def test_reconnect(client, opener):
    opener.ports.append(FakeSerial())
    client.post("/v2/sync")
    r = client.post("/v2/reconnect")
    assert r.status_code == 200
    assert r.json()["connected"] is True
    assert len(opener.calls) == 2


def test_silent_target_is_502_and_lock_released(monkeypatch, opener, console, sleeps):
    silent = CooperativeTarget(reply=lambda blob: b"")
    opener.ports.extend([silent, FakeSerial()])
    session = Session("/dev/ttyTEST", 9600, console=console, compiler=_compile, opener=opener)
    mgr = DeviceManager(serial_port="/dev/ttyTEST", uart_baud=9600, noreset=True, result_ticks=50, session=session)
    monkeypatch.setattr(server, "mgr", mgr)
    client = TestClient(server.app)

    r = client.post("/v2/eval", files={"blob": ("p.mrb", b"RITE", "application/octet-stream")})
    assert r.status_code == 502
    assert "result.marker" in r.json()["detail"]
    assert len(sleeps) < 50

    assert client.get("/health").status_code == 200
    assert client.post("/v2/reconnect").status_code == 200
