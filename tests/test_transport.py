"""End-to-end: FeynmanClient over WebsocketsTransport against a local websockets server."""
import asyncio

import pytest
import websockets

from feynman.api.ws import MockStudent
from feynman.services.client import (
    AgentResponse,
    ClientEvent,
    Closed,
    ConnectionFailed,
    ConnectionState,
    FeynmanClient,
    Initialized,
    Opened,
)


async def _student(ws):
    student = MockStudent()
    async for raw in ws:
        if raw == "garbage please":
            await ws.send("{broken")
            continue
        reply = student.handle(raw)
        if reply is not None:
            await ws.send(reply.model_dump_json())


@pytest.fixture
async def server_url():
    async with websockets.serve(_student, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


def _recorder(client):
    events = []
    queue: asyncio.Queue = asyncio.Queue()

    def record(event):
        events.append(event)
        queue.put_nowait(event)

    for kind in ClientEvent:
        client.on(kind, record)
    return events, queue


async def _next(queue, kind):
    while True:
        event = await asyncio.wait_for(queue.get(), timeout=5)
        if isinstance(event, kind):
            return event


async def test_session_over_real_socket(server_url, config):
    client = FeynmanClient(server_url, config=config)
    events, queue = _recorder(client)

    assert client.connect("Operating Systems") is True
    assert client.connect("Operating Systems") is False

    initialized = await _next(queue, Initialized)
    assert initialized.main_topic == "Operating Systems"
    assert isinstance(events[0], Opened)

    # a malformed frame from the server is dropped and the connection survives
    assert client.send_user_message("garbage please")
    assert client.send_user_message("A process is a program in execution.")
    response = await _next(queue, AgentResponse)
    assert response.text
    assert client.state == ConnectionState.OPEN

    client.close()
    closed = await _next(queue, Closed)
    assert closed.code == 1000
    assert client.state == ConnectionState.CLOSED


async def test_connection_refused_reports_error_then_close(config):
    client = FeynmanClient("ws://127.0.0.1:9", config=config)
    events, queue = _recorder(client)

    client.connect("OS")
    await _next(queue, Closed)

    assert [type(e) for e in events] == [ConnectionFailed, Closed]
    assert client.state == ConnectionState.CLOSED
    assert client.connect("OS") is True
    client.close()
    await _next(queue, Closed)
