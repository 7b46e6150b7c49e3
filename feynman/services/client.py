"""Event-driven client for the Feynman teaching agent websocket API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Dict, List, Optional, Tuple

from feynman.core.config import Settings, settings as default_settings
from feynman.core.errors import ApplicationError, DecodeError, TransportError
from feynman.models.messages import (
    ClientInit,
    ClientUserMessage,
    ServerAgentResponse,
    ServerError,
    ServerInitialized,
    UnknownMessage,
)
from feynman.services import codec
from feynman.services.transport import Transport, WebsocketsTransport

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ClientEvent(str, Enum):
    OPEN = "open"
    CLOSE = "close"
    ERROR = "error"
    INITIALIZED = "initialized"
    AGENT_RESPONSE = "agentResponse"
    SERVER_ERROR = "serverError"


# Event payloads, one fixed shape per ClientEvent

@dataclass(frozen=True)
class Opened:
    kind: ClassVar[ClientEvent] = ClientEvent.OPEN


@dataclass(frozen=True)
class Closed:
    code: int
    reason: str
    kind: ClassVar[ClientEvent] = ClientEvent.CLOSE


@dataclass(frozen=True)
class ConnectionFailed:
    cause: TransportError
    kind: ClassVar[ClientEvent] = ClientEvent.ERROR


@dataclass(frozen=True)
class Initialized:
    main_topic: str
    subtopics: Tuple[str, ...]
    kind: ClassVar[ClientEvent] = ClientEvent.INITIALIZED


@dataclass(frozen=True)
class AgentResponse:
    text: str
    kind: ClassVar[ClientEvent] = ClientEvent.AGENT_RESPONSE


@dataclass(frozen=True)
class ServerErrorReported:
    message: str
    kind: ClassVar[ClientEvent] = ClientEvent.SERVER_ERROR

    @property
    def error(self) -> ApplicationError:
        return ApplicationError(self.message)


Listener = Callable[[object], None]
TransportFactory = Callable[[str], Transport]


class FeynmanClient:
    """
    Owns at most one transport at a time and re-emits protocol frames as typed events.

    The ``init`` frame is sent automatically as soon as the transport opens;
    callers only ever send user messages.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        transport_factory: Optional[TransportFactory] = None,
        config: Optional[Settings] = None,
    ):
        self._config = config or default_settings
        self.url = url or self._config.WS_URL
        self._transport_factory = transport_factory or (
            lambda u: WebsocketsTransport(u, config=self._config)
        )
        self._transport: Optional[Transport] = None
        self._listeners: Dict[ClientEvent, List[Listener]] = {}
        self.state = ConnectionState.IDLE
        self.topic: Optional[str] = None

    # -- subscriptions -------------------------------------------------------

    def on(self, event: ClientEvent, listener: Listener) -> None:
        listeners = self._listeners.setdefault(ClientEvent(event), [])
        if not any(existing is listener for existing in listeners):
            listeners.append(listener)

    def off(self, event: ClientEvent, listener: Listener) -> None:
        listeners = self._listeners.get(ClientEvent(event))
        if not listeners:
            return
        for i, existing in enumerate(listeners):
            if existing is listener:
                del listeners[i]
                return

    def listener_count(self, event: ClientEvent) -> int:
        return len(self._listeners.get(ClientEvent(event), ()))

    def _emit(self, payload) -> None:
        # copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners.get(payload.kind, ())):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s event failed", payload.kind.value)

    # -- lifecycle -----------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def connect(self, topic: str) -> bool:
        """Open a connection and initialize a session for ``topic``."""
        if self._transport is not None:
            logger.warning("FeynmanClient is already connected or connecting (state=%s).", self.state.value)
            return False

        self.topic = topic
        logger.info("Connecting to %s for topic %r", self.url, topic)
        try:
            transport = self._transport_factory(self.url)
            self._transport = transport
            self.state = ConnectionState.CONNECTING
            transport.start(_Binding(self, transport))
        except Exception as e:
            # roll back so a later connect() can try again
            self._transport = None
            self.state = ConnectionState.CLOSED
            logger.error("Could not start connection to %s: %s", self.url, e)
            self._emit(ConnectionFailed(cause=TransportError(f"Could not start connection: {e}", cause=e)))
            return False
        return True

    def send_user_message(self, text: str) -> bool:
        if self.state != ConnectionState.OPEN:
            logger.error("Cannot send message, connection is not open (state=%s).", self.state.value)
            return False
        self._send(ClientUserMessage(text=text))
        return True

    def close(self) -> None:
        if self._transport is None:
            return
        logger.info("Closing connection to %s", self.url)
        self._transport.close()

    def _send(self, message) -> None:
        if self._transport is not None:
            self._transport.send(codec.encode(message))

    # -- transport callbacks -------------------------------------------------

    def _handle_open(self) -> None:
        logger.info("Connection to %s opened.", self.url)
        self.state = ConnectionState.OPEN
        # init must precede any other traffic on a fresh connection
        self._send(ClientInit(topic=self.topic or ""))
        self._emit(Opened())

    def _handle_frame(self, frame) -> None:
        try:
            message = codec.decode(frame)
        except DecodeError as e:
            logger.error("Failed to parse server message: %s", e)
            return

        if isinstance(message, ServerInitialized):
            self._emit(Initialized(main_topic=message.main_topic, subtopics=tuple(message.subtopics)))
        elif isinstance(message, ServerAgentResponse):
            self._emit(AgentResponse(text=message.text))
        elif isinstance(message, ServerError):
            self._emit(ServerErrorReported(message=message.message))
        elif isinstance(message, UnknownMessage):
            logger.debug("Ignoring frame with unknown type %r", message.type)

    def _handle_close(self, code: int, reason: str) -> None:
        logger.info("Connection closed. Code: %s, Reason: %s", code, reason)
        self._transport = None
        self.state = ConnectionState.CLOSED
        self._emit(Closed(code=code, reason=reason))

    def _handle_error(self, error: TransportError) -> None:
        logger.error("Transport error: %s", error)
        self._emit(ConnectionFailed(cause=error))


class _Binding:
    """Forwards callbacks from one transport, dropping them once it is stale."""

    def __init__(self, client: FeynmanClient, transport: Transport):
        self._client = client
        self._transport = transport

    def _current(self) -> bool:
        if self._client._transport is self._transport:
            return True
        logger.debug("Ignoring callback from a stale transport")
        return False

    def on_open(self) -> None:
        if self._current():
            self._client._handle_open()

    def on_message(self, frame) -> None:
        if self._current():
            self._client._handle_frame(frame)

    def on_close(self, code: int, reason: str) -> None:
        if self._current():
            self._client._handle_close(code, reason)

    def on_error(self, error: TransportError) -> None:
        if self._current():
            self._client._handle_error(error)
