"""Transport abstraction under the protocol client, plus the websockets implementation."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from feynman.core.config import Settings, settings as default_settings
from feynman.core.errors import TransportError

logger = logging.getLogger(__name__)

ABNORMAL_CLOSURE = 1006


class TransportListener(Protocol):
    """Callbacks a transport delivers, in arrival order, on the event loop."""

    def on_open(self) -> None: ...

    def on_message(self, frame) -> None: ...

    def on_close(self, code: int, reason: str) -> None: ...

    def on_error(self, error: TransportError) -> None: ...


class Transport(ABC):
    """One connection attempt to one address. Not reusable after it closes."""

    def __init__(self, url: str):
        self.url = url

    @abstractmethod
    def start(self, listener: TransportListener) -> None:
        """Begin connecting; results arrive through the listener."""

    @abstractmethod
    def send(self, frame: str) -> None:
        """Queue a text frame. Frames go out in the order they were queued."""

    @abstractmethod
    def close(self) -> None:
        """Request a graceful close. Safe to call repeatedly."""


class WebsocketsTransport(Transport):
    """
    Websocket connection driven by one reader task and one writer task.

    ``on_close`` is delivered exactly once, after the reader stops for any
    reason, including a failed handshake (which also produces ``on_error``).
    """

    def __init__(self, url: str, config: Optional[Settings] = None):
        super().__init__(url)
        self._config = config or default_settings
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._listener: Optional[TransportListener] = None
        self._ws = None
        self._closing = False
        self._close_delivered = False

    def start(self, listener: TransportListener) -> None:
        if self._task is not None:
            raise RuntimeError("Transport already started")
        self._listener = listener
        self._task = asyncio.get_running_loop().create_task(self._run(listener))
        self._task.add_done_callback(self._on_task_done)

    def send(self, frame: str) -> None:
        self._outbox.put_nowait(frame)

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        if self._ws is not None:
            asyncio.get_running_loop().create_task(self._ws.close())
        elif self._task is not None:
            self._task.cancel()

    async def _run(self, listener: TransportListener) -> None:
        code, reason = ABNORMAL_CLOSURE, ""
        try:
            async with websockets.connect(
                self.url,
                open_timeout=self._config.OPEN_TIMEOUT,
                ping_interval=self._config.PING_INTERVAL,
                max_size=self._config.MAX_FRAME_SIZE,
            ) as ws:
                self._ws = ws
                if self._closing:
                    await ws.close()
                else:
                    listener.on_open()
                writer = asyncio.create_task(self._drain(ws))
                try:
                    async for frame in ws:
                        listener.on_message(frame)
                except ConnectionClosed as e:
                    logger.info("Connection to %s dropped: %s", self.url, e)
                finally:
                    writer.cancel()
                code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
                reason = ws.close_reason or ""
        except (OSError, asyncio.TimeoutError, InvalidHandshake, InvalidURI) as e:
            listener.on_error(TransportError(f"Could not connect to {self.url}: {e}", cause=e))
            reason = str(e)
        finally:
            self._ws = None
        self._deliver_close(code, reason)

    def _on_task_done(self, task: asyncio.Task) -> None:
        # cancellation before the first step skips _run entirely
        if task.cancelled():
            self._deliver_close(ABNORMAL_CLOSURE, "cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Transport task for %s failed: %s", self.url, exc)
            self._listener.on_error(TransportError(f"Transport failed: {exc}", cause=exc))
            self._deliver_close(ABNORMAL_CLOSURE, str(exc))

    def _deliver_close(self, code: int, reason: str) -> None:
        if self._close_delivered:
            return
        self._close_delivered = True
        self._listener.on_close(code, reason)

    async def _drain(self, ws) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await ws.send(frame)
            except ConnectionClosed:
                logger.warning("Dropping outbound frame, connection already closed")
                return
