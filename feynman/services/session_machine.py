"""Turn-taking and coverage state for one teaching session."""
from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from typing import Callable, Optional, Protocol, Sequence, Tuple

from feynman.core.config import Settings, settings as default_settings
from feynman.models.session import (
    CRITERIA,
    AIStatus,
    ChatMessage,
    CoverageState,
    Criterion,
    Role,
    Session,
    SessionStatus,
    Subtopic,
)
from feynman.services.client import (
    AgentResponse,
    ClientEvent,
    Closed,
    FeynmanClient,
    Initialized,
    ServerErrorReported,
)
from feynman.services.coverage import percent_covered
from feynman.services.scheduler import LoopScheduler, Scheduler, TimerGroup

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Session], None]

ELAPSED_TIMER = "elapsed"
CAPTURE_TIMER = "capture"
THINKING_TIMER = "thinking"
SPEAKING_TIMER = "speaking"

WORDS_POOL = (
    "the scheduler selects next process based on priority time slice io wait mutex semaphore "
    "paging segmentation tlb cache locality system call fork exec pipe interrupt context switch "
    "round robin multilevel feedback queue"
).split()

FOLLOW_UP_QUESTION = (
    "Could you provide a concrete example that illustrates the mechanism you described?"
)


class CoveragePolicy(Protocol):
    def apply(self, subtopics: Sequence[Subtopic]) -> Optional[Tuple[int, Criterion]]:
        """Mutate coverage after an agent turn; return what changed, if anything."""


class RandomTogglePolicy:
    """
    Flip one randomly chosen (subtopic, criterion) pair after every turn.

    covered <-> questioned, and pending becomes questioned. This is a stand-in
    until coverage is scored from what the teacher actually said.
    """

    _NEXT = {
        CoverageState.COVERED: CoverageState.QUESTIONED,
        CoverageState.QUESTIONED: CoverageState.COVERED,
        CoverageState.PENDING: CoverageState.QUESTIONED,
    }

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def apply(self, subtopics: Sequence[Subtopic]) -> Optional[Tuple[int, Criterion]]:
        if not subtopics:
            return None
        idx = self.rng.randrange(len(subtopics))
        criterion = self.rng.choice(CRITERIA)
        subtopic = subtopics[idx]
        subtopic.set_state(criterion, self._NEXT[subtopic.state(criterion)])
        return idx, criterion


class SessionMachine(ABC):
    """
    Sole writer of a session's ``ai_status``, ``messages`` and ``subtopics``.

    Every timer the session uses lives in ``self.timers``; ``end()`` closes
    the group so nothing fires after teardown.
    """

    def __init__(
        self,
        session: Session,
        scheduler: Optional[Scheduler] = None,
        config: Optional[Settings] = None,
        on_change: Optional[ChangeCallback] = None,
    ):
        self.session = session
        self.config = config or default_settings
        self.timers = TimerGroup(scheduler or LoopScheduler())
        self._on_change = on_change

    @property
    def ai_status(self) -> AIStatus:
        return self.session.ai_status

    @property
    def progress(self) -> int:
        return percent_covered(self.session.subtopics)

    def can_submit(self) -> bool:
        return self.session.is_active and self.session.ai_status == AIStatus.LISTENING

    def start(self) -> None:
        """Start counting elapsed seconds while the session is active."""
        if self.session.is_active:
            self.timers.every(ELAPSED_TIMER, self.config.ELAPSED_TICK_SEC, self._tick_elapsed)

    def end(self) -> None:
        self.timers.close()
        if self.session.status == SessionStatus.ENDED:
            return
        self.session.status = SessionStatus.ENDED
        logger.info("Session %s ended", self.session.id)
        self._changed()

    def submit(self, text: str) -> bool:
        """Hand the teacher's explanation to the agent; only allowed while listening."""
        if not self.can_submit():
            logger.warning(
                "Rejected input for session %s: status=%s ai_status=%s",
                self.session.id,
                self.session.status.value,
                self.session.ai_status.value,
            )
            return False
        text = text.strip()
        if not text:
            logger.warning("Rejected empty input for session %s", self.session.id)
            return False
        return self._dispatch(text)

    @abstractmethod
    def _dispatch(self, text: str) -> bool:
        """Deliver accepted input to the agent."""

    def append_user_message(self, content: str) -> ChatMessage:
        return self._append(Role.USER, content)

    def append_ai_message(self, content: str) -> ChatMessage:
        return self._append(Role.AI, content)

    def _append(self, role: Role, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self.session.messages.append(message)
        self._changed()
        return message

    def _set_status(self, status: AIStatus) -> None:
        if self.session.ai_status != status:
            logger.debug("Session %s: %s -> %s", self.session.id, self.session.ai_status.value, status.value)
            self.session.ai_status = status
            self._changed()

    def _tick_elapsed(self) -> None:
        self.session.elapsed_sec += 1
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.session)


class LiveSession(SessionMachine):
    """Session driven by a real agent over a ``FeynmanClient``."""

    def __init__(self, session: Session, client: FeynmanClient, **kwargs):
        super().__init__(session, **kwargs)
        self.client = client
        self.connected = False
        self.last_error: Optional[str] = None
        self._handlers = (
            (ClientEvent.OPEN, self._on_open),
            (ClientEvent.INITIALIZED, self._on_initialized),
            (ClientEvent.AGENT_RESPONSE, self._on_agent_response),
            (ClientEvent.SERVER_ERROR, self._on_server_error),
            (ClientEvent.CLOSE, self._on_close),
        )

    def connect(self) -> bool:
        if not self.session.is_active:
            logger.warning("Session %s has ended; not connecting", self.session.id)
            return False
        for event, handler in self._handlers:
            self.client.on(event, handler)
        started = self.client.connect(self.session.topic)
        if not started:
            # busy with another session, or the transport failed to start
            self._detach()
            return False
        self.start()
        return True

    def disconnect(self) -> None:
        self.client.close()
        self._detach()
        self.connected = False
        self.end()

    def can_submit(self) -> bool:
        return self.connected and super().can_submit()

    def _dispatch(self, text: str) -> bool:
        if not self.client.send_user_message(text):
            return False
        self.append_user_message(text)
        self._set_status(AIStatus.THINKING)
        return True

    def _detach(self) -> None:
        for event, handler in self._handlers:
            self.client.off(event, handler)

    def _on_open(self, _event) -> None:
        self.connected = True
        self._changed()

    def _on_initialized(self, event: Initialized) -> None:
        self.session.main_topic = event.main_topic
        self.session.subtopics = [Subtopic.named(name) for name in event.subtopics]
        self.session.messages = []
        self.session.ai_status = AIStatus.LISTENING
        logger.info("Session %s started for topic: %s", self.session.id, event.main_topic)
        self._changed()

    def _on_agent_response(self, event: AgentResponse) -> None:
        self.append_ai_message(event.text)
        self._set_status(AIStatus.LISTENING)

    def _on_server_error(self, event: ServerErrorReported) -> None:
        logger.warning("Server error in session %s: %s", self.session.id, event.message)
        self.last_error = event.message
        self._set_status(AIStatus.LISTENING)

    def _on_close(self, event: Closed) -> None:
        self.connected = False
        self._detach()
        self.end()


class SimulatedSession(SessionMachine):
    """Offline stand-in for the agent: fake transcription and canned replies."""

    def __init__(
        self,
        session: Session,
        rng: Optional[random.Random] = None,
        policy: Optional[CoveragePolicy] = None,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        self.rng = rng or random.Random()
        self.policy = policy or RandomTogglePolicy(self.rng)

    @property
    def capturing(self) -> bool:
        return self.timers.active(CAPTURE_TIMER)

    def start_listening(self) -> bool:
        if not self.can_submit():
            logger.warning("Session %s cannot capture while %s", self.session.id, self.session.ai_status.value)
            return False
        return self.timers.every(CAPTURE_TIMER, self.config.TRANSCRIPT_TICK_SEC, self._capture_word)

    def stop_listening(self) -> bool:
        if not self.capturing:
            return False
        self.timers.cancel(CAPTURE_TIMER)
        final_text = self.session.live_transcript.strip()
        self.session.live_transcript = ""
        if final_text:
            self.append_user_message(final_text)
        self._reply()
        return True

    def _dispatch(self, text: str) -> bool:
        # typed input replaces any capture in progress
        self.timers.cancel(CAPTURE_TIMER)
        self.session.live_transcript = ""
        self.append_user_message(text)
        self._reply()
        return True

    def _capture_word(self) -> None:
        word = self.rng.choice(WORDS_POOL)
        transcript = self.session.live_transcript
        self.session.live_transcript = f"{transcript} {word}" if transcript else word
        self._changed()

    def _reply(self) -> None:
        self._set_status(AIStatus.THINKING)
        self.timers.once(THINKING_TIMER, self.config.THINKING_DELAY_SEC, self._start_speaking)

    def _start_speaking(self) -> None:
        self._set_status(AIStatus.SPEAKING)
        self.timers.once(SPEAKING_TIMER, self.config.SPEAKING_DELAY_SEC, self._finish_turn)

    def _finish_turn(self) -> None:
        self.append_ai_message(FOLLOW_UP_QUESTION)
        changed = self.policy.apply(self.session.subtopics)
        if changed is not None:
            idx, criterion = changed
            logger.debug("Session %s: %s/%s toggled", self.session.id, self.session.subtopics[idx].name, criterion.value)
        self._set_status(AIStatus.LISTENING)
