import json

import pytest

from feynman.core.errors import DecodeError
from feynman.models.messages import (
    ClientInit,
    ClientUserMessage,
    ServerAgentResponse,
    ServerError,
    ServerInitialized,
    UnknownMessage,
)
from feynman.services import codec


def test_encode_init_matches_wire_format():
    frame = codec.encode(ClientInit(topic="Operating Systems"))
    assert json.loads(frame) == {"type": "init", "topic": "Operating Systems"}
    assert frame == '{"type":"init","topic":"Operating Systems"}'


def test_encode_is_deterministic():
    msg = ClientUserMessage(text="hello")
    assert codec.encode(msg) == codec.encode(ClientUserMessage(text="hello"))
    assert codec.decode_client(codec.encode(msg)) == msg


def test_decode_initialized():
    msg = codec.decode('{"type":"initialized","main_topic":"OS","subtopics":["Processes","Memory"]}')
    assert isinstance(msg, ServerInitialized)
    assert msg.main_topic == "OS"
    assert msg.subtopics == ["Processes", "Memory"]


def test_decode_accepts_bytes():
    msg = codec.decode(b'{"type":"agent_response","text":"Why?"}')
    assert msg == ServerAgentResponse(text="Why?")


def test_decode_error_frame():
    assert codec.decode('{"type":"error","message":"boom"}') == ServerError(message="boom")


def test_unknown_tag_is_not_an_error():
    msg = codec.decode('{"type":"audio_delta","data":"..."}')
    assert isinstance(msg, UnknownMessage)
    assert msg.type == "audio_delta"


@pytest.mark.parametrize(
    "frame",
    [
        "not json",
        "[1, 2, 3]",
        '{"main_topic": "OS"}',
        '{"type": 7}',
        '{"type":"initialized","main_topic":"OS"}',
        '{"type":"agent_response","text":null}',
        b"\xff\xfe",
    ],
)
def test_malformed_frames_raise_decode_error(frame):
    with pytest.raises(DecodeError):
        codec.decode(frame)


def test_decode_client_unknown_tag():
    assert codec.decode_client('{"type":"ping"}') == UnknownMessage(type="ping")
