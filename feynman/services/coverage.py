"""Coverage percentages computed from subtopic criterion states."""
import math
from typing import Dict, Iterable, Sequence, Tuple

from feynman.models.session import CRITERIA, CoverageState, Criterion, Subtopic


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent_covered(subtopics: Sequence[Subtopic]) -> int:
    """Share of (subtopic, criterion) pairs marked covered, as an int in [0, 100]."""
    total = len(subtopics) * len(CRITERIA)
    if total == 0:
        return 0
    covered = sum(
        1 for s in subtopics for c in CRITERIA if s.states[c] == CoverageState.COVERED
    )
    return round_half_up(covered / total * 100)


def criterion_counts(subtopics: Iterable[Subtopic]) -> Dict[Criterion, Tuple[int, int]]:
    """Map each criterion to (covered, total) across the given subtopics."""
    counts = {c: [0, 0] for c in CRITERIA}
    for s in subtopics:
        for c in CRITERIA:
            counts[c][1] += 1
            if s.states[c] == CoverageState.COVERED:
                counts[c][0] += 1
    return {c: (covered, total) for c, (covered, total) in counts.items()}


def ratio_percent(covered: int, total: int) -> int:
    return round_half_up(covered / total * 100) if total > 0 else 0


def criterion_percent(subtopics: Sequence[Subtopic], criterion: Criterion) -> int:
    covered, total = criterion_counts(subtopics)[Criterion(criterion)]
    return ratio_percent(covered, total)
