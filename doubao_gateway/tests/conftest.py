"""Pytest configuration for the gateway test suite.

Provides:
- isolation from ``.env`` files and external config files;
- ``mock_upstream``: every pooled ``httpx`` client is replaced by one backed
  by ``httpx.MockTransport`` routing requests to per-test responders;
- ``sleeps``: records retry delays instead of sleeping;
- ``frames``: builders for upstream event-stream frames.
"""

from __future__ import annotations

import base64
import json
import struct
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from doubao_gateway.config import reset_config_cache

Responder = Callable[[httpx.Request], httpx.Response]

CONVERSATION_ID = "abcdefghijklmnopqrstuvwx"


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep developer ``.env``/config files out of the tests."""
    monkeypatch.setenv("DOTENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.delenv("GATEWAY_CONFIG_FILE", raising=False)
    reset_config_cache()
    yield
    reset_config_cache()


class MockUpstream:
    """Route requests of pooled clients to test responders.

    Routes are matched in registration order on method and a substring of
    the full URL; unmatched requests get a 599 so they never pass silently.
    """

    def __init__(self) -> None:
        self.routes: List[Tuple[str, str, Responder]] = []
        self.requests: List[httpx.Request] = []
        self._clients: Dict[Tuple[Optional[str], str], httpx.Client] = {}

    def add(self, method: str, url_part: str, responder: Responder) -> None:
        self.routes.append((method.upper(), url_part, responder))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, url_part, responder in self.routes:
            if request.method == method and url_part in str(request.url):
                return responder(request)
        return httpx.Response(599, json={"error": f"no route for {request.method} {request.url}"})

    def client(self, base_url: Optional[str], purpose: str) -> httpx.Client:
        key = (base_url, purpose)
        if key not in self._clients:
            transport = httpx.MockTransport(self.handle)
            if base_url:
                self._clients[key] = httpx.Client(base_url=base_url, transport=transport)
            else:
                self._clients[key] = httpx.Client(transport=transport)
        return self._clients[key]

    def sent(self, method: str, url_part: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and url_part in str(r.url)]

    def close(self) -> None:
        for client in self._clients.values():
            client.close()


@pytest.fixture()
def mock_upstream(monkeypatch: pytest.MonkeyPatch):
    from doubao_gateway.doubao import transport as transport_module
    from doubao_gateway.doubao import upload as upload_module

    upstream = MockUpstream()
    monkeypatch.setattr(transport_module, "get_httpx_client", upstream.client)
    monkeypatch.setattr(upload_module, "get_httpx_client", upstream.client)
    yield upstream
    upstream.close()


@pytest.fixture()
def sleeps(monkeypatch: pytest.MonkeyPatch) -> List[float]:
    recorded: List[float] = []
    monkeypatch.setattr(time, "sleep", recorded.append)
    return recorded


class FrameBuilder:
    """Builders for upstream event-stream frames and responses."""

    conversation_id = CONVERSATION_ID

    @staticmethod
    def frame(payload: Any) -> bytes:
        return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")

    def delta(self, text: str, *, shape: str = "text", conversation_id: Optional[str] = None) -> bytes:
        if shape == "text":
            content = json.dumps({"text": text}, ensure_ascii=False)
        elif shape == "delta":
            content = json.dumps({"delta": {"text": text}}, ensure_ascii=False)
        elif shape == "string":
            content = json.dumps(text, ensure_ascii=False)
        else:
            content = text
        event_data = {
            "message": {"content": content, "content_type": 2001},
            "conversation_id": conversation_id or self.conversation_id,
        }
        return self.frame({"event_type": 2001, "event_data": json.dumps(event_data, ensure_ascii=False)})

    def close(self) -> bytes:
        return self.frame({"event_type": 2003})

    def finish(self) -> bytes:
        event_data = {"is_finish": True, "conversation_id": self.conversation_id}
        return self.frame({"event_type": 2001, "event_data": json.dumps(event_data)})

    def error(self, code: int = 710022004, message: str = "rate limited") -> bytes:
        return self.frame({"code": code, "message": message})

    @staticmethod
    def stream_response(*chunks: bytes, content_type: str = "text/event-stream") -> httpx.Response:
        return httpx.Response(200, headers={"content-type": content_type}, content=iter(list(chunks)))


@pytest.fixture()
def frames() -> FrameBuilder:
    return FrameBuilder()


def envelope(data: Any = None, code: int = 0, msg: str = "") -> httpx.Response:
    return httpx.Response(200, json={"code": code, "msg": msg, "data": data})


@pytest.fixture()
def ok_envelope() -> Callable[..., httpx.Response]:
    return envelope


@pytest.fixture()
def png_bytes() -> bytes:
    """A 3x2 PNG header followed by filler bytes."""
    ihdr = struct.pack(">II", 3, 2) + b"\x08\x02\x00\x00\x00"
    return b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + ihdr + b"\x00" * 64


@pytest.fixture()
def png_data_uri(png_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


class InlineExecutor:
    """Executor stand-in running submitted work immediately."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, ...]] = []

    def submit(self, fn, *args, **kwargs):
        self.calls.append(args)
        fn(*args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        return None


@pytest.fixture()
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture()
def gateway_logs():
    """Capture the JSON payloads emitted through the ``gateway`` logger."""
    import logging

    from doubao_gateway.base.logging import BASE_LOGGER_NAME, get_logger

    records: List[Dict[str, Any]] = []

    class _Collect(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                payload = json.loads(record.getMessage())
            except ValueError:
                payload = {"msg": record.getMessage()}
            payload.setdefault("level", record.levelname)
            records.append(payload)

    base = get_logger(BASE_LOGGER_NAME)
    handler = _Collect(level=logging.DEBUG)
    base.addHandler(handler)
    try:
        yield records
    finally:
        base.removeHandler(handler)
