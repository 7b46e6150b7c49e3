import json
import logging
import random
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from feynman.core.config import Settings, settings as default_settings
from feynman.models.session import AIStatus, Session, Subtopic
from feynman.services.client import FeynmanClient
from feynman.services.scheduler import Scheduler
from feynman.services.session_machine import LiveSession, SessionMachine, SimulatedSession
from feynman.services.topics import DashboardStats, TopicSummary, dashboard_stats, summarize

logger = logging.getLogger(__name__)

_sessions_adapter = TypeAdapter(List[Session])

DEFAULT_SUBTOPICS = (
    "Process Management",
    "Memory Management",
    "Concurrency & Synchronization",
    "File Systems",
    "I/O Management",
    "Scheduling",
)


class SessionRepository:
    """
    JSON file holding the session list under a fixed key.

    Reads never raise: a missing, unreadable or corrupt file yields an empty list.
    """

    def __init__(self, config: Optional[Settings] = None):
        config = config or default_settings
        self.path = Path(config.STORAGE_DIR) / config.STORAGE_FILE
        self.key = config.STORAGE_KEY

    def load(self) -> List[Session]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return []
        try:
            document = json.loads(raw)
            return _sessions_adapter.validate_python(document[self.key])
        except (json.JSONDecodeError, ValidationError, KeyError, TypeError) as e:
            logger.warning("Ignoring corrupt session data in %s: %s", self.path, e)
            return []

    def save(self, sessions: Sequence[Session]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {self.key: _sessions_adapter.dump_python(list(sessions), mode="json")}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        tmp.replace(self.path)


class SessionStore:
    """
    In-memory session registry, newest first, persisted after every change.
    """

    def __init__(
        self,
        repository: Optional[SessionRepository] = None,
        scheduler: Optional[Scheduler] = None,
        config: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or default_settings
        self.repository = repository or SessionRepository(self.config)
        self._scheduler = scheduler
        self._rng = rng or random.Random()
        self._sessions: List[Session] = []
        self._machines: Dict[str, SessionMachine] = {}

    @property
    def sessions(self) -> List[Session]:
        return list(self._sessions)

    def load(self) -> List[Session]:
        """Restore persisted sessions; active ones resume their elapsed timer offline."""
        self._sessions = self.repository.load()
        for session in self._sessions:
            if session.is_active:
                # a turn saved mid-flight has no timer left to finish it
                session.ai_status = AIStatus.LISTENING
                session.live_transcript = ""
                self._register(SimulatedSession(session, rng=self._rng, **self._machine_kwargs()))
        logger.info("Loaded %d session(s)", len(self._sessions))
        return self.sessions

    def create_simulated(self, topic: str, subtopics: Sequence[str] = DEFAULT_SUBTOPICS) -> SimulatedSession:
        session = Session(topic=topic, subtopics=[Subtopic.named(name) for name in subtopics])
        machine = SimulatedSession(session, rng=self._rng, **self._machine_kwargs())
        self._add(machine)
        return machine

    def create_live(self, topic: str, client: FeynmanClient) -> LiveSession:
        machine = LiveSession(Session(topic=topic), client, **self._machine_kwargs())
        self._add(machine)
        return machine

    def get(self, session_id: str) -> Session:
        for session in self._sessions:
            if session.id == session_id:
                return session
        raise KeyError(f"Session {session_id} not found")

    def machine(self, session_id: str) -> SessionMachine:
        machine = self._machines.get(session_id)
        if machine is None:
            raise KeyError(f"No running machine for session {session_id}")
        return machine

    def end(self, session_id: str) -> Session:
        session = self.get(session_id)
        machine = self._machines.pop(session_id, None)
        if machine is not None:
            if isinstance(machine, LiveSession):
                machine.disconnect()
            else:
                machine.end()
        return session

    def end_all(self) -> None:
        for session_id in list(self._machines):
            self.end(session_id)

    def topics_summary(self) -> List[TopicSummary]:
        return summarize(self._sessions)

    def dashboard(self) -> DashboardStats:
        return dashboard_stats(self._sessions)

    def _add(self, machine: SessionMachine) -> None:
        self._sessions.insert(0, machine.session)
        self._register(machine)
        logger.info("Session created: %s (topic: %s)", machine.session.id, machine.session.topic)
        self._persist(machine.session)

    def _register(self, machine: SessionMachine) -> None:
        self._machines[machine.session.id] = machine
        if not isinstance(machine, LiveSession):
            machine.start()

    def _machine_kwargs(self) -> dict:
        return {"scheduler": self._scheduler, "config": self.config, "on_change": self._persist}

    def _persist(self, session: Session) -> None:
        if not session.is_active:
            self._machines.pop(session.id, None)
        try:
            self.repository.save(self._sessions)
        except OSError as e:
            logger.warning("Could not persist sessions: %s", e)
