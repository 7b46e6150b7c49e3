import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

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

logger = logging.getLogger(__name__)

router = APIRouter()

KNOWN_CURRICULA: Dict[str, List[str]] = {
    "Operating Systems": [
        "Process Management",
        "Memory Management",
        "Concurrency & Synchronization",
        "File Systems",
        "I/O Management",
        "Scheduling",
    ],
}

FOLLOW_UPS = (
    "Can you give a concrete example of that?",
    "How does that work under the hood?",
    "Could you define that term more precisely?",
)


def curriculum_for(topic: str) -> List[str]:
    if topic in KNOWN_CURRICULA:
        return list(KNOWN_CURRICULA[topic])
    return [f"{topic}: Fundamentals", f"{topic}: Core Mechanisms", f"{topic}: Applications"]


class MockStudent:
    """Scripted student agent: one curriculum per topic, rotating follow-up questions."""

    def __init__(self):
        self.topic: Optional[str] = None
        self.turns = 0

    def handle(self, raw: str) -> Optional[BaseModel]:
        try:
            msg = codec.decode_client(raw)
        except DecodeError as e:
            return ServerError(message=f"Invalid frame: {e}")

        if isinstance(msg, ClientInit):
            self.topic = msg.topic
            self.turns = 0
            return ServerInitialized(main_topic=msg.topic, subtopics=curriculum_for(msg.topic))

        if isinstance(msg, ClientUserMessage):
            if self.topic is None:
                return ServerError(message="Session not initialized; send 'init' first")
            reply = FOLLOW_UPS[self.turns % len(FOLLOW_UPS)]
            self.turns += 1
            return ServerAgentResponse(text=reply)

        if isinstance(msg, UnknownMessage):
            return ServerError(message=f"Unknown message type: {msg.type}")
        return None


@router.websocket("/ws")
async def ws_student(websocket: WebSocket):
    await websocket.accept()
    student = MockStudent()
    try:
        while True:
            raw = await websocket.receive_text()
            reply = student.handle(raw)
            if reply is not None:
                await _send(websocket, reply)
    except WebSocketDisconnect:
        logger.info("Teacher disconnected (topic: %s, turns: %d)", student.topic, student.turns)


async def _send(ws: WebSocket, message: BaseModel):
    # Always send text JSON for compatibility
    await ws.send_text(codec.encode(message))
