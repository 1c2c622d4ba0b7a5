"""Doubao chat completion orchestrator.

Purpose:
    Run one chat completion against the Doubao web API: upload the
    attachments of the latest message, pack the conversation into a single
    upstream message, open the streaming completion call and transcode the
    event stream into a :class:`CompletionObject` (buffered) or a
    :class:`LiveSequence` of chunks (streaming).

Retries and error handling:
    - The pack -> call -> transcode pipeline is retried on any
      ``GatewayError`` with a fixed delay (``max_retries`` retries after the
      first attempt, ``retry_delay_seconds`` apart).
    - Streaming attempts are primed: the stream is read up to its first
      delta or terminal event before being handed out, so failures before any
      output are retried too.
    - After exhaustion, buffered mode raises the last error and streaming mode
      returns a single fallback chunk.

Cleanup:
    Every call creates an ephemeral upstream conversation. It is deleted on a
    background executor once the answer is complete, or when a live sequence
    is closed or abandoned. Deletion failures are logged only.
"""
from __future__ import annotations

import itertools
import logging
import re
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

import httpx

from ..base.dto import CompletionRequestDTO
from ..base.errors import ErrorCode, GatewayError, UpstreamRequestFailed, classify_exception
from ..base.logging import LogContext, get_logger, log_event, normalized_log_event
from ..base.log_support import summarize_messages, truncate_for_log
from ..base.models import MODEL_NAME, AssetRef, CompletionChunk, CompletionObject, Message
from ..base.resilience import RetryConfig, retry
from ..base.streaming import LiveSequence
from ..config import get_gateway_config
from .attachments import extract_reference_urls
from .packer import MessagePacker
from .session import DeviceProfile, random_digits
from .tokens import pick_token
from .transcoder import StreamTranscoder
from .transport import DoubaoTransport
from .upload import AssetUploader

FALLBACK_TEXT = "服务暂时不可用，第三方响应错误"

_CONVERSATION_ID_RE = re.compile(r"[0-9a-zA-Z]{24}")

COMPLETION_OPTION: Dict[str, Any] = {
    "is_regen": False,
    "with_suggest": True,
    "need_create_conversation": True,
    "launch_stage": 1,
    "is_replace": False,
    "is_delete": False,
    "message_from": 0,
    "action_bar_skill_id": 0,
    "use_deep_think": False,
    "use_auto_cot": False,
    "resend_for_regen": False,
    "enable_commerce_credit": False,
    "event_id": "0",
}


def is_valid_conversation_id(value: Optional[str]) -> bool:
    return bool(value) and bool(_CONVERSATION_ID_RE.search(value or ""))


def build_completion_body(messages: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Request body of the chat call around the packed ``messages``."""
    return {
        "messages": messages,
        "completion_option": dict(COMPLETION_OPTION),
        "evaluate_option": {"web_ab_params": ""},
        "section_id": f"26{random_digits(16)}",
        "conversation_id": "0",
        "local_conversation_id": f"local_16{random_digits(14)}",
        "local_message_id": str(uuid.uuid4()),
    }


def session_token(credential: str) -> str:
    """Pick one session token; a credential without any raises an ``auth`` error."""
    try:
        return pick_token(credential)
    except ValueError as exc:
        raise UpstreamRequestFailed(
            "credential carries no session token", code=ErrorCode.AUTH, retryable=False, raw=exc
        ) from exc


def fallback_sequence() -> LiveSequence:
    """Single-chunk sequence returned once streaming retries are exhausted."""
    return LiveSequence.single(
        CompletionChunk(id="", content=FALLBACK_TEXT, finish_reason="stop", include_usage=True)
    )


def _guarded_bytes(response: httpx.Response) -> Iterator[bytes]:
    try:
        yield from response.iter_bytes()
    except httpx.HTTPError as exc:
        raise UpstreamRequestFailed(
            f"completion stream interrupted: {exc}", code=classify_exception(exc), raw=exc
        ) from exc


class _ConversationCleanup:
    """Schedule deletion of one upstream conversation at most once."""

    def __init__(self, schedule: Callable[[str], None]) -> None:
        self._schedule = schedule
        self._lock = threading.Lock()
        self._done = False

    def __call__(self, conversation_id: str) -> None:
        with self._lock:
            if self._done:
                return
            self._done = True
        self._schedule(conversation_id)


class DoubaoChatClient:
    """Chat completions against the Doubao web API.

    Parameters:
        profile: Process-scoped device identity; generated from config when
            omitted.
        transport: Session-cookie transport (built from ``profile``).
        uploader: Attachment uploader (built from ``transport``).
        packer: Message packer.
        config: Merged ``doubao`` config section.
        cleanup_executor: Executor for conversation deletion; an owned
            two-worker pool is created when omitted and shut down by
            :meth:`close`.
    """

    def __init__(
        self,
        profile: Optional[DeviceProfile] = None,
        *,
        transport: Optional[DoubaoTransport] = None,
        uploader: Optional[AssetUploader] = None,
        packer: Optional[MessagePacker] = None,
        config: Optional[Dict[str, Any]] = None,
        cleanup_executor: Optional[ThreadPoolExecutor] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        cfg = config if config is not None else get_gateway_config("doubao")
        self._logger = logger or get_logger("gateway.doubao.client")
        if profile is None:
            profile = transport.profile if transport is not None else DeviceProfile.from_config(cfg)
        self.profile = profile
        self.transport = transport or DoubaoTransport(self.profile, base_url=str(cfg["base_url"]))
        self.uploader = uploader or AssetUploader(self.transport, config=cfg)
        self.packer = packer or MessagePacker()
        self._owns_executor = cleanup_executor is None
        self._cleanup = cleanup_executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="doubao-cleanup")
        self._max_retries = max(0, int(cfg["max_retries"]))
        self._retry_delay = float(cfg["retry_delay_seconds"])

    # ---- public API ----
    def complete(
        self,
        messages: Sequence[Message],
        credential: str,
        *,
        stream: bool = False,
        conversation_id: Optional[str] = None,
        assistant_id: Optional[str] = None,
    ) -> Union[CompletionObject, LiveSequence]:
        """Run one completion; see :meth:`create_completion` and
        :meth:`create_completion_stream`."""
        if stream:
            return self.create_completion_stream(
                messages, credential, conversation_id=conversation_id, assistant_id=assistant_id
            )
        return self.create_completion(
            messages, credential, conversation_id=conversation_id, assistant_id=assistant_id
        )

    def handle(self, request: CompletionRequestDTO) -> Union[CompletionObject, LiveSequence]:
        """Run a validated inbound completion request."""
        return self.complete(
            request.to_messages(),
            request.credential,
            stream=request.stream,
            conversation_id=request.conversation_id,
            assistant_id=request.assistant_id,
        )

    def create_completion(
        self,
        messages: Sequence[Message],
        credential: str,
        *,
        conversation_id: Optional[str] = None,
        assistant_id: Optional[str] = None,
    ) -> CompletionObject:
        """Buffered completion; raises the last ``GatewayError`` after retries.

        A credential without any session token raises
        :class:`UpstreamRequestFailed` (``auth``) before any upstream call.
        """
        ctx = self._context()
        token = session_token(credential)
        has_context = is_valid_conversation_id(conversation_id)
        refs = self._upload_attachments(messages, token, ctx)

        def _attempt() -> CompletionObject:
            body = self._pack(messages, refs, has_context)
            response = self.transport.open_completion_stream(token, body, assistant_id=assistant_id)
            try:
                return StreamTranscoder(logger=self._logger).buffered(_guarded_bytes(response))
            finally:
                response.close()

        answer = retry(self._retry_config(ctx))(_attempt)()
        ctx.conversation_id = answer.id or None
        normalized_log_event(
            self._logger,
            "completion.complete",
            ctx,
            phase="finalize",
            emitted=True,
            content_length=len(answer.content),
        )
        self._schedule_delete(answer.id, token, ctx)
        return answer

    def create_completion_stream(
        self,
        messages: Sequence[Message],
        credential: str,
        *,
        conversation_id: Optional[str] = None,
        assistant_id: Optional[str] = None,
    ) -> LiveSequence:
        """Streaming completion; never raises ``GatewayError``.

        Exhausted retries and credentials without a session token both yield
        the single-chunk fallback sequence.
        """
        ctx = self._context()
        try:
            token = session_token(credential)
        except GatewayError as exc:
            self._log_fallback(ctx, exc)
            return fallback_sequence()
        has_context = is_valid_conversation_id(conversation_id)
        refs = self._upload_attachments(messages, token, ctx)

        def _attempt() -> LiveSequence:
            body = self._pack(messages, refs, has_context)
            response = self.transport.open_completion_stream(token, body, assistant_id=assistant_id)
            cleanup = _ConversationCleanup(lambda conv_id: self._schedule_delete(conv_id, token, ctx))
            transcoder = StreamTranscoder(on_done=cleanup, logger=self._logger)
            events = transcoder.events(_guarded_bytes(response))
            try:
                primed = list(itertools.islice(events, 1))
            except BaseException:
                response.close()
                raise
            sequence = LiveSequence(transcoder.live(itertools.chain(primed, events)))
            sequence.add_cleanup(response.close)
            sequence.add_cleanup(lambda: cleanup(transcoder.conversation_id))
            return sequence

        try:
            return retry(self._retry_config(ctx))(_attempt)()
        except GatewayError as exc:
            self._log_fallback(ctx, exc)
            self._schedule_delete("", token, ctx)
            return fallback_sequence()

    def token_live_status(self, credential: str) -> bool:
        """Return True when the session token still resolves to an account."""
        try:
            data = self.transport.account_info(session_token(credential))
        except GatewayError as exc:
            log_event(
                self._logger,
                "token.check_failed",
                LogContext(upstream="doubao"),
                level=logging.WARNING,
                error_code=exc.code.value,
                kind=exc.kind,
            )
            return False
        return isinstance(data, dict) and bool(data.get("user_id"))

    def close(self) -> None:
        """Shut down the owned cleanup executor, waiting for pending deletions."""
        if self._owns_executor:
            self._cleanup.shutdown(wait=True)

    def __enter__(self) -> "DoubaoChatClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- internals ----
    def _context(self) -> LogContext:
        return LogContext(upstream="doubao", model=MODEL_NAME, request_id=uuid.uuid4().hex)

    def _log_fallback(self, ctx: LogContext, exc: GatewayError) -> None:
        normalized_log_event(
            self._logger,
            "completion.fallback",
            ctx,
            level=logging.ERROR,
            phase="finalize",
            error_code=exc.code.value,
            kind=exc.kind,
            emitted=True,
            error=truncate_for_log(exc.message),
        )

    def _retry_config(self, ctx: LogContext) -> RetryConfig:
        def _log_attempt(*, attempt: int, max_attempts: int, delay: float | None, error: GatewayError | None) -> None:
            if error is None:
                return
            normalized_log_event(
                self._logger,
                "completion.attempt_failed",
                ctx,
                level=logging.WARNING,
                phase="completion",
                attempt=attempt + 1,
                error_code=error.code.value,
                kind=error.kind,
                emitted=False,
                max_attempts=max_attempts,
                retry_in=delay,
                error=truncate_for_log(error.message),
            )

        return RetryConfig(
            max_attempts=self._max_retries + 1,
            fixed_delay=self._retry_delay,
            retryable_codes=None,
            attempt_logger=_log_attempt,
        )

    def _upload_attachments(
        self, messages: Sequence[Message], token: str, ctx: LogContext
    ) -> List[Optional[AssetRef]]:
        log_event(self._logger, "completion.request", ctx, messages=summarize_messages(messages)[-1:], count=len(messages))
        sources = extract_reference_urls(messages)
        if not sources:
            return []
        return self.uploader.upload_all(sources, token)

    def _pack(
        self, messages: Sequence[Message], refs: Sequence[Optional[AssetRef]], has_context: bool
    ) -> Dict[str, Any]:
        payload = self.packer.pack(messages, refs, has_context)
        return build_completion_body(payload.to_messages())

    def _schedule_delete(self, conversation_id: str, token: str, ctx: LogContext) -> None:
        if not conversation_id:
            log_event(self._logger, "cleanup.skipped", ctx, reason="no_conversation_id")
            return
        try:
            self._cleanup.submit(self._delete_conversation, conversation_id, token, ctx)
        except RuntimeError as exc:
            log_event(
                self._logger,
                "cleanup.not_scheduled",
                ctx,
                level=logging.WARNING,
                conversation_id=conversation_id,
                error=str(exc),
            )

    def _delete_conversation(self, conversation_id: str, token: str, ctx: LogContext) -> None:
        try:
            self.transport.delete_conversation(conversation_id, token)
        except GatewayError as exc:
            normalized_log_event(
                self._logger,
                "cleanup.failed",
                ctx,
                level=logging.WARNING,
                phase="cleanup",
                error_code=exc.code.value,
                kind=exc.kind,
                emitted=False,
                deleted_conversation=conversation_id,
                error=truncate_for_log(exc.message),
            )
            return
        log_event(self._logger, "cleanup.deleted", ctx, deleted_conversation=conversation_id)


__all__ = [
    "DoubaoChatClient",
    "FALLBACK_TEXT",
    "COMPLETION_OPTION",
    "build_completion_body",
    "fallback_sequence",
    "is_valid_conversation_id",
    "session_token",
]
