"""Roll-ups of session coverage by topic, for dashboards."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence

from feynman.models.session import CRITERIA, Criterion, Session
from feynman.services.coverage import criterion_counts, percent_covered, ratio_percent, round_half_up


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def severity_for(percent: int) -> Severity:
    if percent > 66:
        return Severity.HIGH
    if percent > 33:
        return Severity.MEDIUM
    return Severity.LOW


@dataclass(frozen=True)
class CriterionSummary:
    label: Criterion
    percent: int
    severity: Severity


@dataclass(frozen=True)
class TopicSummary:
    topic: str
    session_count: int
    avg_progress: int
    criteria: List[CriterionSummary]

    @property
    def per_criterion_percent(self) -> Dict[Criterion, int]:
        return {c.label: c.percent for c in self.criteria}


@dataclass(frozen=True)
class DashboardStats:
    total_sessions: int
    active_sessions: int
    avg_progress: int


def summarize(sessions: Sequence[Session]) -> List[TopicSummary]:
    """Group sessions by exact topic string, in first-seen order."""
    groups: Dict[str, List[Session]] = {}
    for s in sessions:
        groups.setdefault(s.topic, []).append(s)

    summaries = []
    for topic, group in groups.items():
        progress = [percent_covered(s.subtopics) for s in group]
        counts = criterion_counts(st for s in group for st in s.subtopics)
        criteria = []
        for c in CRITERIA:
            pct = ratio_percent(*counts[c])
            criteria.append(CriterionSummary(label=c, percent=pct, severity=severity_for(pct)))
        summaries.append(
            TopicSummary(
                topic=topic,
                session_count=len(group),
                avg_progress=round_half_up(sum(progress) / len(group)),
                criteria=criteria,
            )
        )
    return summaries


def dashboard_stats(sessions: Sequence[Session]) -> DashboardStats:
    progress = [percent_covered(s.subtopics) for s in sessions]
    return DashboardStats(
        total_sessions=len(sessions),
        active_sessions=sum(1 for s in sessions if s.is_active),
        avg_progress=round_half_up(sum(progress) / len(progress)) if progress else 0,
    )
