"""Session-cookie transport for the Doubao web API.

Every call carries the common query parameters and browser headers of a
:class:`DeviceProfile` plus the caller's session cookie. Non-streaming
responses use the ``{code, msg, data}`` envelope, unwrapped by
:func:`check_envelope`. The chat completion call is opened as a streaming
response the caller owns and must close.

Timeouts:
    - metadata budget for enveloped calls (credential, deletion, account info)
    - completion budget for the streaming chat call
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..base.errors import ErrorCode, UpstreamRequestFailed, classify_exception, code_for_status
from ..base.http import get_httpx_client
from ..base.logging import LogContext, get_logger, log_event
from ..base.log_support import truncate_for_log
from ..base.timeouts import get_timeout_config
from .session import DeviceProfile

COMPLETION_PATH = "/samantha/chat/completion"
DELETE_PATH = "/samantha/thread/delete"
ACCOUNT_INFO_PATH = "/passport/account/info/v2"
PREPARE_UPLOAD_PATH = "/alice/resource/prepare_upload"

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"


def check_envelope(response: httpx.Response) -> Any:
    """Unwrap a ``{code, msg, data}`` response envelope.

    - body without a numeric ``code``: returned as-is (HTTP errors raise)
    - ``code == 0``: ``data`` is returned
    - any other code: :class:`UpstreamRequestFailed`
    """
    try:
        body = response.json()
    except ValueError as exc:
        raise UpstreamRequestFailed(
            f"non-JSON response (HTTP {response.status_code}): {truncate_for_log(response.text)}",
            code=code_for_status(response.status_code),
            raw=exc,
        ) from exc
    code = body.get("code") if isinstance(body, dict) else None
    if isinstance(code, bool) or not isinstance(code, (int, float)):
        if response.status_code >= 400:
            raise UpstreamRequestFailed(
                f"HTTP {response.status_code}: {truncate_for_log(str(body))}",
                code=code_for_status(response.status_code),
            )
        return body
    if code == 0:
        return body.get("data")
    raise UpstreamRequestFailed(f"[doubao request failed]: {code}-{body.get('msg')}")


class DoubaoTransport:
    """Issue authenticated calls against the Doubao web API."""

    def __init__(
        self,
        profile: DeviceProfile,
        *,
        base_url: str = "https://www.doubao.com",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.profile = profile
        self.base_url = base_url.rstrip("/")
        self._logger = logger or get_logger("gateway.doubao.transport")

    def _client(self) -> httpx.Client:
        return get_httpx_client(self.base_url, "doubao.api")

    def _build(
        self,
        method: str,
        path: str,
        session_token: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        assistant_id: Optional[str] = None,
    ) -> httpx.Request:
        query = self.profile.common_params(assistant_id)
        if params:
            query.update(params)
        return self._client().build_request(
            method.upper(),
            path,
            params=query,
            headers=self.profile.headers(session_token, headers),
            json=json,
            timeout=timeout if timeout is not None else get_timeout_config().metadata_timeout_seconds,
        )

    def request(
        self,
        method: str,
        path: str,
        session_token: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        assistant_id: Optional[str] = None,
    ) -> Any:
        """Send an enveloped call and return the unwrapped ``data``.

        Transport failures are raised as :class:`UpstreamRequestFailed` with
        the classified error code.
        """
        req = self._build(
            method, path, session_token,
            json=json, params=params, headers=headers, timeout=timeout, assistant_id=assistant_id,
        )
        try:
            response = self._client().send(req)
        except httpx.HTTPError as exc:
            raise UpstreamRequestFailed(f"{method.upper()} {path} failed: {exc}", code=classify_exception(exc), raw=exc) from exc
        return check_envelope(response)

    def open_completion_stream(
        self,
        session_token: str,
        body: Dict[str, Any],
        *,
        assistant_id: Optional[str] = None,
    ) -> httpx.Response:
        """Open the streaming chat call; the caller must close the response.

        Raises :class:`UpstreamRequestFailed` when the call fails or the
        response is not an event stream (the body is logged, truncated).
        """
        req = self._build(
            "POST",
            COMPLETION_PATH,
            session_token,
            json=body,
            headers={"Referer": "https://www.doubao.com/chat/", "agw-js-conv": "str, str"},
            timeout=get_timeout_config().completion_timeout_seconds,
            assistant_id=assistant_id,
        )
        try:
            response = self._client().send(req, stream=True)
        except httpx.HTTPError as exc:
            raise UpstreamRequestFailed(f"completion call failed: {exc}", code=classify_exception(exc), raw=exc) from exc
        content_type = response.headers.get("content-type", "")
        if EVENT_STREAM_CONTENT_TYPE not in content_type:
            try:
                preview = truncate_for_log(response.read().decode("utf-8", errors="replace"))
            except httpx.HTTPError:
                preview = ""
            finally:
                response.close()
            log_event(
                self._logger,
                "completion.bad_content_type",
                LogContext(upstream="doubao"),
                level=logging.ERROR,
                status=response.status_code,
                content_type=content_type,
                body=preview,
            )
            raise UpstreamRequestFailed(
                f"Stream response Content-Type invalid: {content_type or '<none>'}",
                code=code_for_status(response.status_code) if response.status_code >= 400 else ErrorCode.UPSTREAM,
            )
        return response

    def delete_conversation(self, conversation_id: str, session_token: str) -> None:
        """Delete an upstream conversation (no-op for an empty id)."""
        if not conversation_id:
            return
        self.request("POST", DELETE_PATH, session_token, json={"conversation_id": conversation_id})

    def account_info(self, session_token: str) -> Any:
        return self.request("POST", ACCOUNT_INFO_PATH, session_token, params={"account_sdk_source": "web"})

    def prepare_upload(self, session_token: str, resource_type: int) -> Any:
        """Request an upload credential for one asset (2 = image, 1 = file)."""
        return self.request(
            "POST",
            PREPARE_UPLOAD_PATH,
            session_token,
            json={"tenant_id": "5", "scene_id": "5", "resource_type": resource_type},
            headers={"agw-js-conv": "str"},
        )


__all__ = [
    "DoubaoTransport",
    "check_envelope",
    "COMPLETION_PATH",
    "DELETE_PATH",
    "ACCOUNT_INFO_PATH",
    "PREPARE_UPLOAD_PATH",
]
