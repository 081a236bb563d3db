"""Tests for SSEDecoder: framing must not depend on where reads split."""

import json

import pytest

from vendorlink.sse import SSEDecoder

from tests.conftest import sse_stream


def decode_all(chunks) -> tuple[list[str], bool]:
    decoder = SSEDecoder()
    payloads = []
    for chunk in chunks:
        payloads.extend(decoder.feed(chunk))
    return payloads, decoder.done


STREAM = sse_stream("Hel", "lo", " wörld ✓")
EXPECTED = [json.dumps({"choices": [{"index": 0, "delta": {"content": c}, "finish_reason": None}]}, ensure_ascii=False)
            for c in ("Hel", "lo", " wörld ✓")]


# ─────────────────────────────────────────────────────────────────────
# CHUNK BOUNDARIES
# ─────────────────────────────────────────────────────────────────────


class TestChunkBoundaries:
    def test_single_chunk(self):
        payloads, done = decode_all([STREAM])
        assert payloads == EXPECTED
        assert done is True

    @pytest.mark.parametrize("cut", range(1, len(STREAM)))
    def test_every_two_way_split(self, cut):
        payloads, done = decode_all([STREAM[:cut], STREAM[cut:]])
        assert payloads == EXPECTED
        assert done is True

    def test_byte_by_byte(self):
        payloads, done = decode_all([STREAM[i:i + 1] for i in range(len(STREAM))])
        assert payloads == EXPECTED
        assert done is True

    def test_split_inside_multibyte_character(self):
        raw = 'data: {"t": "✓"}\n'.encode("utf-8")
        split_at = raw.index("✓".encode("utf-8")) + 1
        payloads, _ = decode_all([raw[:split_at], raw[split_at:]])
        assert payloads == ['{"t": "✓"}']

    def test_unterminated_line_is_held(self):
        decoder = SSEDecoder()
        assert decoder.feed(b'data: {"a": 1}') == []
        assert decoder.feed(b"\n") == ['{"a": 1}']


# ─────────────────────────────────────────────────────────────────────
# LINE HANDLING
# ─────────────────────────────────────────────────────────────────────


class TestLineHandling:
    def test_crlf_line_endings(self):
        payloads, done = decode_all([b"data: one\r\n\r\ndata: two\r\n\r\ndata: [DONE]\r\n"])
        assert payloads == ["one", "two"]
        assert done is True

    def test_non_data_lines_ignored(self):
        raw = b": keep-alive\nevent: message\nid: 7\nretry: 100\ndata: x\n"
        payloads, _ = decode_all([raw])
        assert payloads == ["x"]

    def test_empty_payload_ignored(self):
        payloads, _ = decode_all([b"data:\ndata:    \ndata: y\n"])
        assert payloads == ["y"]

    def test_prefix_without_space(self):
        payloads, _ = decode_all([b'data:{"a":1}\n'])
        assert payloads == ['{"a":1}']

    def test_payload_is_trimmed(self):
        payloads, _ = decode_all([b"   data:   spaced   \n"])
        assert payloads == ["spaced"]

    def test_custom_prefixes(self):
        decoder = SSEDecoder(prefixes=("data:", "delta:"))
        assert decoder.feed(b"delta: a\ndata: b\n") == ["a", "b"]


# ─────────────────────────────────────────────────────────────────────
# TERMINATION
# ─────────────────────────────────────────────────────────────────────


class TestTermination:
    def test_frames_after_done_are_dropped(self):
        decoder = SSEDecoder()
        assert decoder.feed(b"data: a\ndata: [DONE]\ndata: b\n") == ["a"]
        assert decoder.done is True
        assert decoder.feed(b"data: c\n") == []

    def test_done_token_with_whitespace(self):
        payloads, done = decode_all([b"data:   [DONE]  \n"])
        assert payloads == []
        assert done is True

    def test_eof_without_done(self):
        payloads, done = decode_all([b"data: a\n\n"])
        assert payloads == ["a"]
        assert done is False

    def test_empty_chunk(self):
        decoder = SSEDecoder()
        assert decoder.feed(b"") == []
        assert decoder.done is False
