"""Finite, non-restartable sequence of completion chunks.

A :class:`LiveSequence` wraps the chunk iterator produced by a transcoder
together with the cleanup that must run however the consumer stops reading:
closing the upstream response and scheduling deletion of the ephemeral
upstream conversation. Cleanup callbacks run exactly once, when the sequence
is exhausted, when the consumer calls :meth:`close`, or when the sequence is
garbage collected.
"""
from __future__ import annotations

from contextlib import ExitStack, suppress
from typing import Callable, Iterable, Iterator, List

from ..models import DONE_FRAME, CompletionChunk


class LiveSequence:
    """Iterator of :class:`CompletionChunk` with idempotent cleanup."""

    def __init__(self, chunks: Iterable[CompletionChunk]) -> None:
        self._chunks: Iterator[CompletionChunk] = iter(chunks)
        self._stack = ExitStack()
        self._closed = False

    @classmethod
    def single(cls, chunk: CompletionChunk) -> "LiveSequence":
        """Return a sequence that yields exactly one chunk."""
        return cls([chunk])

    def add_cleanup(self, callback: Callable[[], None]) -> None:
        """Register a best-effort callback; callbacks run in reverse order."""

        def _safe() -> None:
            with suppress(Exception):
                callback()

        self._stack.callback(_safe)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "LiveSequence":
        return self

    def __next__(self) -> CompletionChunk:
        if self._closed:
            raise StopIteration
        try:
            return next(self._chunks)
        except StopIteration:
            self.close()
            raise
        except BaseException:
            self.close()
            raise

    def close(self) -> None:
        """Stop the sequence and run cleanup (idempotent)."""
        if self._closed:
            return
        self._closed = True
        close_fn = getattr(self._chunks, "close", None)
        if callable(close_fn):
            with suppress(Exception):
                close_fn()
        self._stack.close()

    def __enter__(self) -> "LiveSequence":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __del__(self) -> None:  # pragma: no cover - interpreter dependent
        with suppress(Exception):
            self.close()

    def iter_sse(self) -> Iterator[str]:
        """Yield ``data: <json>`` frames followed by the ``[DONE]`` frame."""
        try:
            for chunk in self:
                yield chunk.to_sse()
            yield DONE_FRAME
        finally:
            self.close()

    def collect(self) -> List[CompletionChunk]:
        """Drain the sequence into a list (tests and diagnostics)."""
        return list(self)


__all__ = ["LiveSequence"]
