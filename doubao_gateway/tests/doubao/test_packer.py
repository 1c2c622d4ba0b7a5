"""Message packing: strategies, attachment filtering and inline-data stripping."""
from __future__ import annotations

import base64
import json
import time

import pytest

from doubao_gateway.base.models import AssetRef, ContentPart, Message
from doubao_gateway.doubao.packer import (
    ATTACHMENT_FOCUS_PROMPT,
    MessagePacker,
    PlainConcatenation,
    RoleDelimitedHistory,
    strip_inline_data,
)

B64_RUN = base64.b64encode(bytes(range(256)) * 3).decode("ascii")


def _text(payload) -> str:
    [message] = payload.to_messages()
    return json.loads(message["content"])["text"]


@pytest.mark.parametrize(
    "message",
    [
        Message(role="user", content="hello there"),
        Message(role="system", content="  padded  "),
        Message(role="user", content=[ContentPart(type="text", text="first"), ContentPart(type="text", text="second")]),
    ],
)
def test_single_message_is_plain_text_without_role_markers(message):
    text = _text(MessagePacker().pack([message]))
    assert "<|im_start|>" not in text
    assert text == "\n".join(message.text_parts()).strip()


def test_continued_conversation_uses_plain_concatenation():
    messages = [Message(role="user", content="a"), Message(role="assistant", content="b"), Message(role="user", content="c")]
    assert _text(MessagePacker().pack(messages, [], True)) == "a\nb\nc"


def test_multi_turn_history_is_role_delimited():
    messages = [
        Message(role="system", content="rules"),
        Message(role="user", content=[ContentPart(type="text", text="q1")]),
        Message(role="assistant", content="see ![img](http://x/y.png) at /mnt/data/out.csv"),
    ]
    text = _text(MessagePacker().pack(messages))
    assert text == (
        "<|im_start|>system\nrules\n<|im_end|>\n"
        "<|im_start|>user\nq1\n"
        "<|im_start|>assistant\nsee  at \n<|im_end|>"
    )


def test_last_message_with_image_restricts_text_and_strips_base64():
    messages = [
        Message(role="user", content="earlier question"),
        Message(role="assistant", content="earlier answer"),
        Message(
            role="user",
            content=[
                ContentPart(type="text", text=f"describe data:image/png;base64,{B64_RUN} this"),
                ContentPart(type="image", url="https://img.invalid/cat.png"),
                ContentPart(type="text", text=B64_RUN),
            ],
        ),
    ]
    original = list(messages)
    payload = MessagePacker().pack(messages, [None])
    text = _text(payload)
    assert text == "describe  this"
    assert "earlier" not in text
    assert payload.attachments == []
    assert messages == original and len(messages) == 3


def test_focus_prompt_inserted_before_last_message_with_attachment():
    seen = []

    class Recording(RoleDelimitedHistory):
        def render(self, messages):
            seen.append(list(messages))
            return super().render(messages)

    messages = [
        Message(role="user", content="context"),
        Message(role="user", content=[ContentPart(type="text", text="read it"), ContentPart(type="file", url="https://f.invalid/a.pdf")]),
    ]
    packer = MessagePacker(delimited=Recording())
    text = _text(packer.pack(messages, [AssetRef.placeholder("a.pdf", "pdf")]))
    rendered = seen[0]
    assert [m.role for m in rendered] == ["user", "system", "user"]
    assert rendered[1].content == ATTACHMENT_FOCUS_PROMPT
    assert ATTACHMENT_FOCUS_PROMPT in text
    assert len(messages) == 2


def test_uncommitted_images_are_dropped_committed_become_vlm_attachments():
    refs = [
        AssetRef(storage_key="tos-cn-i-abc/1.png", kind="image", name="cat.png", extension="png", width=640, height=480),
        AssetRef(storage_key="tmp/not-committed", kind="image", name="", extension="png", width=1, height=1),
        AssetRef(storage_key="tos-cn-i-abc/2.jpeg", kind="image", name="", extension="jpeg"),
    ]
    messages = [Message(role="user", content="a"), Message(role="user", content="b")]
    payload = MessagePacker().pack(messages, refs)
    [message] = payload.to_messages()
    assert message["content_type"] == 2001
    assert message["references"] == []
    assert [a["key"] for a in message["attachments"]] == ["tos-cn-i-abc/1.png", "tos-cn-i-abc/2.jpeg"]
    first, second = message["attachments"]
    assert first["type"] == "vlm_image"
    assert first["option"] == {"width": 640, "height": 480}
    assert first["file_review_state"] == 3 and first["file_parse_state"] == 3
    assert second["name"] == "2.jpeg"
    assert second["option"] == {"width": 1, "height": 1}
    assert first["identifier"] != second["identifier"]
    assert _text(payload) == "b"


def test_strip_inline_data_handles_wrapped_runs_and_dense_lines():
    wrapped = "\n".join(B64_RUN[i:i + 76] for i in range(0, 760, 76))
    dense = "ab+/" * 60 + " x"
    text = f"keep this\n{wrapped}\nand this\n{dense}\n  "
    assert strip_inline_data(text) == "keep this\n\nand this"
    assert strip_inline_data("") == ""


def test_plain_strategy_renders_one_line_per_text_part():
    messages = [Message(role="user", content=[ContentPart(type="text", text="x"), ContentPart(type="image", url="u")]), Message(role="user", content="y")]
    assert PlainConcatenation().render(messages) == "x\ny\n"


def test_wrapped_block_with_short_tail_is_removed_and_short_blocks_kept():
    wrapped = "\n".join(B64_RUN[i:i + 76] for i in range(0, 760, 76)) + "\nQUJD=="
    assert strip_inline_data(f"before\r\n{wrapped}\nafter") == "before\n\nafter"
    short = "\n".join(B64_RUN[i:i + 60] for i in range(0, 180, 60))
    assert strip_inline_data(f"keep\n{short}") == f"keep\n{short}"


@pytest.mark.parametrize("prefix", ["look ", "look\n", ""])
def test_long_pasted_base64_is_stripped_in_linear_time(prefix):
    text = prefix + "QUJD" * 50_000
    started = time.perf_counter()
    stripped = strip_inline_data(text)
    assert time.perf_counter() - started < 2.0
    assert stripped == prefix.strip()


def test_single_message_with_pasted_image_data_packs_quickly():
    message = Message(role="user", content="what is this " + "iVBORw0K" * 20_000)
    started = time.perf_counter()
    payload = MessagePacker().pack([message])
    assert time.perf_counter() - started < 2.0
    assert _text(payload) == "what is this"
