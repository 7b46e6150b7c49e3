from feynman.models.session import CRITERIA, CoverageState, Criterion, Session, SessionStatus, Subtopic
from feynman.services.coverage import criterion_percent, percent_covered, round_half_up
from feynman.services.topics import Severity, dashboard_stats, severity_for, summarize

C, Q, P = CoverageState.COVERED, CoverageState.QUESTIONED, CoverageState.PENDING


def sub(name, definition=P, mechanism=P, example=P):
    return Subtopic(
        id=name.lower(),
        name=name,
        states={
            Criterion.DEFINITION: definition,
            Criterion.MECHANISM: mechanism,
            Criterion.EXAMPLE: example,
        },
    )


def session(topic, subtopics, status=SessionStatus.ACTIVE):
    return Session(topic=topic, subtopics=subtopics, status=status)


def test_empty_is_zero():
    assert percent_covered([]) == 0


def test_all_covered_is_hundred():
    subs = [sub(n, C, C, C) for n in ("a", "b", "c", "d")]
    assert percent_covered(subs) == 100


def test_questioned_does_not_count():
    assert percent_covered([sub("a", Q, Q, Q)]) == 0


def test_mixed_curriculum():
    subs = [
        sub("Process Management", C, C, Q),
        sub("Memory Management", C, P, P),
        sub("Concurrency", Q, P, P),
        sub("File Systems", C, C, C),
        sub("I/O", P, P, P),
        sub("Scheduling", C, Q, P),
    ]
    # 7 of 18 pairs covered
    assert percent_covered(subs) == 39


def test_result_stays_in_bounds():
    for covered in range(0, 10):
        subs = [sub(str(i), C if i < covered else P) for i in range(9)]
        pct = percent_covered(subs)
        assert 0 <= pct <= 100
        assert isinstance(pct, int)


def test_rounds_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(0.5) == 1
    # 1 of 6 pairs -> 16.67
    assert percent_covered([sub("a", C), sub("b")]) == 17


def test_criterion_percent():
    subs = [sub("a", C, Q, P), sub("b", C, C, P)]
    assert criterion_percent(subs, Criterion.DEFINITION) == 100
    assert criterion_percent(subs, Criterion.MECHANISM) == 50
    assert criterion_percent(subs, Criterion.EXAMPLE) == 0
    assert criterion_percent([], Criterion.EXAMPLE) == 0


def test_severity_thresholds():
    assert severity_for(67) == Severity.HIGH
    assert severity_for(66) == Severity.MEDIUM
    assert severity_for(34) == Severity.MEDIUM
    assert severity_for(33) == Severity.LOW
    assert severity_for(0) == Severity.LOW


def test_summarize_groups_by_exact_topic():
    sessions = [
        session("Operating Systems", [sub("a", C, C, C)]),
        session("Networks", [sub("b")]),
        session("Operating Systems", [sub("c", C, P, P), sub("d", C, C, P)]),
        session("operating systems", [sub("e")]),
    ]
    summaries = summarize(sessions)

    assert [s.topic for s in summaries] == ["Operating Systems", "Networks", "operating systems"]
    os_summary = summaries[0]
    assert os_summary.session_count == 2
    # (100 + 50) / 2
    assert os_summary.avg_progress == 75
    assert os_summary.per_criterion_percent == {
        Criterion.DEFINITION: 100,
        Criterion.MECHANISM: 67,
        Criterion.EXAMPLE: 33,
    }
    assert [c.severity for c in os_summary.criteria] == [Severity.HIGH, Severity.HIGH, Severity.LOW]


def test_summarize_session_without_subtopics():
    summary = summarize([session("Empty", [])])[0]
    assert summary.avg_progress == 0
    assert all(c.percent == 0 and c.severity == Severity.LOW for c in summary.criteria)
    assert [c.label for c in summary.criteria] == list(CRITERIA)


def test_dashboard_stats():
    sessions = [
        session("OS", [sub("a", C, C, C)]),
        session("OS", [sub("b")], status=SessionStatus.ENDED),
    ]
    stats = dashboard_stats(sessions)
    assert (stats.total_sessions, stats.active_sessions, stats.avg_progress) == (2, 1, 50)
    assert dashboard_stats([]).avg_progress == 0
