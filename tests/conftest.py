"""
Shared fixtures: an in-memory transport, a manually advanced clock and
settings that keep session files inside the test's tmp_path.
"""
import json
import random
from typing import List

import pytest

from feynman.core.config import Settings
from feynman.core.errors import TransportError
from feynman.services.client import FeynmanClient
from feynman.services.scheduler import Scheduler
from feynman.services.transport import Transport


class FakeTransport(Transport):
    def __init__(self, url: str):
        super().__init__(url)
        self.listener = None
        self.sent: List[str] = []
        self.close_requests = 0

    def start(self, listener) -> None:
        self.listener = listener

    def send(self, frame: str) -> None:
        self.sent.append(frame)

    def close(self) -> None:
        self.close_requests += 1

    # server side

    def open(self):
        self.listener.on_open()

    def receive(self, frame):
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self.listener.on_message(frame)

    def drop(self, code: int = 1000, reason: str = ""):
        self.listener.on_close(code, reason)

    def fail(self, message: str = "connection refused"):
        self.listener.on_error(TransportError(message, cause=ConnectionRefusedError(message)))

    @property
    def sent_json(self):
        return [json.loads(f) for f in self.sent]


class _FakeHandle:
    def __init__(self, when: float, seq: int, callback):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler(Scheduler):
    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._timers: List[_FakeHandle] = []

    def call_later(self, delay, callback):
        self._seq += 1
        handle = _FakeHandle(self.now + delay, self._seq, callback)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, seconds: float):
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._timers.remove(timer)
            self.now = max(self.now, timer.when)
            timer.callback()
        self._timers = [t for t in self._timers if not t.cancelled]
        self.now = target


@pytest.fixture
def config(tmp_path):
    return Settings(STORAGE_DIR=str(tmp_path / "store"), WS_URL="ws://agent.test/ws")


@pytest.fixture
def transports():
    return []


@pytest.fixture
def client(config, transports):
    def factory(url):
        transport = FakeTransport(url)
        transports.append(transport)
        return transport

    return FeynmanClient(transport_factory=factory, config=config)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def rng():
    return random.Random(1234)
