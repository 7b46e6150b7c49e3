"""JSON text-frame codec for the Feynman websocket protocol."""
from __future__ import annotations

import json
from typing import Any, Dict, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from feynman.core.errors import DecodeError
from feynman.models.messages import (
    ClientInit,
    ClientMessage,
    ClientUserMessage,
    ServerAgentResponse,
    ServerError,
    ServerInitialized,
    ServerMessage,
    UnknownMessage,
)

_server_adapter: TypeAdapter = TypeAdapter(ServerMessage)
_client_adapter: TypeAdapter = TypeAdapter(ClientMessage)

SERVER_TAGS = frozenset({"initialized", "agent_response", "error"})
CLIENT_TAGS = frozenset({"init", "user_message"})

Frame = Union[str, bytes]
Decoded = Union[ServerInitialized, ServerAgentResponse, ServerError, UnknownMessage]
DecodedClient = Union[ClientInit, ClientUserMessage, UnknownMessage]


def encode(message: BaseModel) -> str:
    """Serialize a protocol message into one compact JSON text frame."""
    return message.model_dump_json()


def decode(frame: Frame) -> Decoded:
    """Parse a server frame.

    Raises DecodeError for anything that is not a JSON object with a string
    ``type``, or for a known type whose fields do not validate. Unknown types
    come back as ``UnknownMessage`` so the caller can drop them quietly.
    """
    return _decode(frame, SERVER_TAGS, _server_adapter)


def decode_client(frame: Frame) -> DecodedClient:
    """Parse a client frame with the same contract as ``decode``."""
    return _decode(frame, CLIENT_TAGS, _client_adapter)


def _decode(frame: Frame, tags: frozenset, adapter: TypeAdapter):
    text = _as_text(frame)
    data = _load_object(text)
    tag = data.get("type")
    if not isinstance(tag, str):
        raise DecodeError("Frame has no string 'type' field", text)
    if tag not in tags:
        return UnknownMessage(type=tag)
    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        raise DecodeError(f"Invalid '{tag}' frame: {e.error_count()} validation error(s)", text) from e


def _as_text(frame: Frame) -> str:
    if isinstance(frame, (bytes, bytearray)):
        try:
            return bytes(frame).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError("Frame is not valid UTF-8") from e
    return frame


def _load_object(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise DecodeError("Frame is not valid JSON", text) from e
    if not isinstance(data, dict):
        raise DecodeError("Frame is not a JSON object", text)
    return data
