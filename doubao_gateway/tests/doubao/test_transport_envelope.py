"""Envelope unwrapping and request shaping of the session-cookie transport."""
from __future__ import annotations

import json

import httpx
import pytest

from doubao_gateway.base.errors import ErrorCode, UpstreamRequestFailed
from doubao_gateway.doubao.session import DeviceProfile
from doubao_gateway.doubao.transport import DoubaoTransport, check_envelope


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"code": 0, "msg": "", "data": {"user_id": 7}}, {"user_id": 7}),
        ({"code": 0, "msg": ""}, None),
        ({"status": "ok"}, {"status": "ok"}),
    ],
)
def test_check_envelope_unwraps_data(body, expected):
    assert check_envelope(httpx.Response(200, json=body)) == expected


def test_check_envelope_raises_on_nonzero_code():
    with pytest.raises(UpstreamRequestFailed) as info:
        check_envelope(httpx.Response(200, json={"code": 710022004, "msg": "busy"}))
    assert info.value.message == "[doubao request failed]: 710022004-busy"
    assert info.value.code is ErrorCode.UPSTREAM


def test_check_envelope_maps_http_status_without_code():
    with pytest.raises(UpstreamRequestFailed) as info:
        check_envelope(httpx.Response(429, json={"error": "slow down"}))
    assert info.value.code is ErrorCode.RATE_LIMIT

    with pytest.raises(UpstreamRequestFailed) as info:
        check_envelope(httpx.Response(502, content=b"<html>bad gateway</html>"))
    assert info.value.code is ErrorCode.TRANSIENT


@pytest.fixture()
def transport(mock_upstream):
    profile = DeviceProfile(device_id="7000000000000000001", web_id="7000000000000000002")
    return DoubaoTransport(profile, base_url="https://www.doubao.com/")


def test_calls_carry_common_params_and_session_cookie(transport, mock_upstream, ok_envelope):
    mock_upstream.add("POST", "/passport/account/info/v2", lambda req: ok_envelope({"user_id": 1}))

    assert transport.account_info("tok-1") == {"user_id": 1}

    req = mock_upstream.sent("POST", "/passport/account/info/v2")[0]
    params = req.url.params
    assert params["device_id"] == "7000000000000000001"
    assert params["web_id"] == params["tea_uuid"] == "7000000000000000002"
    assert params["aid"] == params["real_aid"] == "497858"
    assert params["account_sdk_source"] == "web"
    assert params["web_tab_id"]
    assert req.headers["cookie"] == "sessionid=tok-1; sessionid_ss=tok-1"
    assert req.headers["x-flow-trace"].startswith("04-")
    assert req.url.host == "www.doubao.com"


def test_each_call_gets_a_fresh_tab_id(transport, mock_upstream, ok_envelope):
    mock_upstream.add("POST", "/passport/account/info/v2", lambda req: ok_envelope({}))
    transport.account_info("tok")
    transport.account_info("tok")
    first, second = mock_upstream.sent("POST", "/passport/account/info/v2")
    assert first.url.params["web_tab_id"] != second.url.params["web_tab_id"]


def test_delete_conversation_posts_id_and_skips_empty(transport, mock_upstream, ok_envelope):
    mock_upstream.add("POST", "/samantha/thread/delete", lambda req: ok_envelope())

    transport.delete_conversation("", "tok")
    assert mock_upstream.sent("POST", "/samantha/thread/delete") == []

    transport.delete_conversation("abcdefghijklmnopqrstuvwx", "tok")
    (req,) = mock_upstream.sent("POST", "/samantha/thread/delete")
    assert json.loads(req.content) == {"conversation_id": "abcdefghijklmnopqrstuvwx"}


def test_transport_errors_are_classified(transport, mock_upstream):
    def _boom(req):
        raise httpx.ConnectError("connection refused", request=req)

    mock_upstream.add("POST", "/alice/resource/prepare_upload", _boom)
    with pytest.raises(UpstreamRequestFailed) as info:
        transport.prepare_upload("tok", 2)
    assert info.value.code is ErrorCode.TRANSIENT


def test_completion_stream_requires_event_stream(transport, mock_upstream, frames, gateway_logs):
    mock_upstream.add(
        "POST", "/samantha/chat/completion",
        lambda req: httpx.Response(200, json={"code": 710012001, "msg": "not login"}),
    )

    with pytest.raises(UpstreamRequestFailed) as info:
        transport.open_completion_stream("tok", {"messages": []})
    assert "Content-Type invalid" in info.value.message
    logged = [r for r in gateway_logs if r.get("event") == "completion.bad_content_type"]
    assert logged and "710012001" in logged[0]["body"]


def test_completion_stream_is_returned_open(transport, mock_upstream, frames):
    mock_upstream.add(
        "POST", "/samantha/chat/completion",
        lambda req: frames.stream_response(frames.delta("hi"), frames.close()),
    )

    response = transport.open_completion_stream("tok", {"messages": []}, assistant_id="123")
    try:
        assert b"".join(response.iter_bytes()).count(b"data: ") == 2
    finally:
        response.close()
    req = mock_upstream.sent("POST", "/samantha/chat/completion")[0]
    assert req.url.params["aid"] == "123"
    assert req.headers["referer"] == "https://www.doubao.com/chat/"
