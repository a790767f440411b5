# tests/test_sse_decoder.py
import pytest
from conftest import chunked, sse_body, sse_frame
from core.sse_decoder import SSEFrameDecoder, iter_sse_deltas, parse_data_payload

DELTAS = ["### 第1章：", "风起", "青萍之末", "\n- **目标**：🌊 启程", "!"]


def decode_chunks(chunks: list[bytes]) -> list[str]:
    decoder = SSEFrameDecoder()
    out: list[str] = []
    for chunk in chunks:
        out.extend(decoder.feed(chunk))
    out.extend(decoder.flush())
    return out


def test_single_chunk_yields_all_deltas_in_order():
    payload = sse_body(DELTAS).encode("utf-8")
    assert decode_chunks([payload]) == DELTAS


def test_every_two_way_split_matches_single_chunk():
    payload = sse_body(DELTAS).encode("utf-8")
    for cut in range(1, len(payload)):
        assert decode_chunks([payload[:cut], payload[cut:]]) == DELTAS, cut


def test_byte_by_byte_feed_handles_split_utf8_sequences():
    payload = sse_body(DELTAS).encode("utf-8")
    chunks = [payload[i : i + 1] for i in range(len(payload))]
    assert decode_chunks(chunks) == DELTAS


def test_done_sentinel_is_consumed_silently():
    decoder = SSEFrameDecoder()
    assert decoder.feed(b"data: [DONE]\n") == []
    assert decoder.done is True


def test_malformed_json_line_is_skipped_without_aborting():
    body = (
        sse_frame("before")
        + "data: {not json at all\n\n"
        + ": keep-alive comment\n\n"
        + "event: ping\n"
        + sse_frame("after")
    )
    decoder = SSEFrameDecoder()
    assert decoder.feed(body.encode()) == ["before", "after"]
    assert decoder.skipped_frames == 1


def test_frames_without_content_yield_nothing():
    body = (
        'data: {"choices": []}\n'
        'data: {"choices": [{"delta": {"role": "assistant"}}]}\n'
        'data: {"choices": [{"delta": {"content": ""}}]}\n'
        "data: [1, 2, 3]\n"
    )
    assert decode_chunks([body.encode()]) == []


def test_crlf_line_endings_are_accepted():
    body = sse_frame("hi").replace("\n", "\r\n").encode()
    assert decode_chunks([body]) == ["hi"]


def test_finish_reason_is_recorded():
    decoder = SSEFrameDecoder()
    decoder.feed(sse_body(["a"], finish_reason="length").encode())
    assert decoder.finish_reason == "length"


def test_unterminated_last_line_is_flushed():
    decoder = SSEFrameDecoder()
    frame = sse_frame("tail").rstrip("\n").encode()
    assert decoder.feed(frame) == []
    assert decoder.flush() == ["tail"]
    assert decoder.flush() == []


def test_parse_data_payload_returns_content_and_finish_reason():
    assert parse_data_payload(
        '{"choices": [{"delta": {"content": "x"}, "finish_reason": null}]}'
    ) == ("x", None)
    assert parse_data_payload("garbage") == (None, None)


@pytest.mark.asyncio
async def test_iter_sse_deltas_over_async_chunks():
    payload = sse_body(DELTAS).encode("utf-8")
    chunks = [payload[i : i + 7] for i in range(0, len(payload), 7)]
    result = [delta async for delta in iter_sse_deltas(chunked(chunks))]
    assert result == DELTAS
