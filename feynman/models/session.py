from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4


class SessionStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


class AIStatus(str, Enum):
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"


class Role(str, Enum):
    USER = "user"
    AI = "ai"


class Criterion(str, Enum):
    DEFINITION = "Definition"
    MECHANISM = "Mechanism"
    EXAMPLE = "Example"


class CoverageState(str, Enum):
    PENDING = "pending"
    COVERED = "covered"
    QUESTIONED = "questioned"


CRITERIA = (Criterion.DEFINITION, Criterion.MECHANISM, Criterion.EXAMPLE)


def new_id() -> str:
    return uuid4().hex[:8]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _pending_states() -> Dict[Criterion, CoverageState]:
    return {c: CoverageState.PENDING for c in CRITERIA}


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str
    id: str = field(default_factory=new_id)


@dataclass
class Subtopic:
    id: str
    name: str
    states: Dict[Criterion, CoverageState] = field(default_factory=_pending_states)

    def __post_init__(self):
        # the criterion set is closed: fill gaps, reject strangers
        states = _pending_states()
        for key, value in self.states.items():
            criterion = Criterion(key)
            states[criterion] = CoverageState(value)
        self.states = states

    def state(self, criterion: Criterion) -> CoverageState:
        return self.states[Criterion(criterion)]

    def set_state(self, criterion: Criterion, state: CoverageState) -> None:
        if criterion not in self.states:
            raise KeyError(f"Unknown criterion: {criterion!r}")
        self.states[criterion] = CoverageState(state)

    @classmethod
    def named(cls, name: str) -> "Subtopic":
        """Build an all-pending subtopic with a fresh id."""
        return cls(id=new_id(), name=name)


@dataclass
class Session:
    topic: str
    id: str = field(default_factory=new_id)
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: str = field(default_factory=utc_now_iso)
    elapsed_sec: int = 0
    messages: List[ChatMessage] = field(default_factory=list)
    subtopics: List[Subtopic] = field(default_factory=list)
    ai_status: AIStatus = AIStatus.LISTENING
    live_transcript: str = ""
    main_topic: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE
