from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from hackhub.errors import ValidationError
from hackhub.services.judging import (aggregate_evaluations, format_total, is_evaluation_complete,
                                      judge_progress, leaderboard, preview_total, rank_evaluations,
                                      validate_score_value)

T0 = datetime(2026, 3, 1, 12, 0, 0)


def rubric(id, weight, max_score=10, name=None):
    return SimpleNamespace(id=id, weight=weight, max_score=max_score, name=name or f"r{id}")


def score(id, judge_id, team_id, rubric_id, value, submitted=True, submitted_at=T0):
    return SimpleNamespace(id=id, judge_id=judge_id, team_id=team_id, rubric_id=rubric_id,
                           score=value, submitted=submitted, submitted_at=submitted_at if submitted else None)


RUBRICS = [rubric(1, Decimal("1")), rubric(2, Decimal("2"))]


def test_complete_evaluation_weighted_total():
    scores = [score(1, 10, 100, 1, 7), score(2, 10, 100, 2, 5)]
    evs = aggregate_evaluations(scores, RUBRICS)
    assert len(evs) == 1
    assert evs[0].total == Decimal("17")
    assert evs[0].display_total == "17.0"
    assert is_evaluation_complete(scores, 10, 100, len(RUBRICS))


def test_partial_evaluation_is_excluded():
    scores = [score(1, 10, 100, 1, 7)]
    assert aggregate_evaluations(scores, RUBRICS) == []
    assert not is_evaluation_complete(scores, 10, 100, len(RUBRICS))


def test_unsubmitted_scores_do_not_count():
    scores = [score(1, 10, 100, 1, 7), score(2, 10, 100, 2, 5, submitted=False)]
    assert aggregate_evaluations(scores, RUBRICS) == []
    assert not is_evaluation_complete(scores, 10, 100, 2)


def test_zero_rubrics_never_complete():
    scores = [score(1, 10, 100, 1, 7)]
    assert aggregate_evaluations(scores, []) == []
    assert not is_evaluation_complete([], 10, 100, 0)


def test_fractional_weights_are_exact():
    rubrics = [rubric(1, 0.1), rubric(2, 0.2), rubric(3, Decimal("0.7"))]
    scores = [score(1, 1, 1, 1, 1), score(2, 1, 1, 2, 1), score(3, 1, 1, 3, 1)]
    (ev,) = aggregate_evaluations(scores, rubrics)
    assert ev.total == Decimal("1.0")
    assert format_total(Decimal("17")) == "17.0"
    assert format_total(Decimal("3.14159")) == "3.1"
    # halves round up
    assert format_total(Decimal("16.25")) == "16.3"
    assert format_total(Decimal("0.05")) == "0.1"


def test_groups_are_per_team_and_judge():
    scores = [
        score(1, 10, 100, 1, 7), score(2, 10, 100, 2, 5),
        score(3, 11, 100, 1, 3), score(4, 11, 100, 2, 3),
        score(5, 10, 101, 1, 9),
    ]
    evs = aggregate_evaluations(scores, RUBRICS)
    assert {(e.team_id, e.judge_id) for e in evs} == {(100, 10), (100, 11)}


def test_score_for_unknown_rubric_does_not_complete():
    scores = [score(1, 10, 100, 1, 7), score(2, 10, 100, 99, 5)]
    assert aggregate_evaluations(scores, RUBRICS) == []


def test_leaderboard_orders_by_total_descending():
    scores = [
        score(1, 10, 100, 1, 2), score(2, 10, 100, 2, 2),   # 6
        score(3, 10, 101, 1, 9), score(4, 10, 101, 2, 9),   # 27
        score(5, 10, 102, 1, 7), score(6, 10, 102, 2, 5),   # 17
    ]
    ranked = leaderboard(scores, RUBRICS)
    assert [e.team_id for e in ranked] == [101, 102, 100]
    for a, b in zip(ranked, ranked[1:]):
        assert a.total >= b.total


def test_ties_break_on_earliest_completion_then_team():
    early, late = T0, T0 + timedelta(minutes=5)
    scores = [
        score(1, 10, 105, 1, 5, submitted_at=late), score(2, 10, 105, 2, 5, submitted_at=late),
        score(3, 10, 104, 1, 5, submitted_at=early), score(4, 10, 104, 2, 5, submitted_at=early),
        score(5, 11, 103, 1, 5, submitted_at=late), score(6, 11, 103, 2, 5, submitted_at=late),
    ]
    ranked = rank_evaluations(aggregate_evaluations(scores, RUBRICS))
    assert [(e.team_id, e.judge_id) for e in ranked] == [(104, 10), (103, 11), (105, 10)]


def test_completion_time_is_last_submission_in_group():
    scores = [score(1, 10, 100, 1, 7, submitted_at=T0),
              score(2, 10, 100, 2, 5, submitted_at=T0 + timedelta(hours=1))]
    (ev,) = aggregate_evaluations(scores, RUBRICS)
    assert ev.completed_at == T0 + timedelta(hours=1)


def test_preview_changes_total_by_weighted_delta():
    scores = [score(1, 10, 100, 1, 7), score(2, 10, 100, 2, 5)]
    before = preview_total(scores, RUBRICS, {})
    after = preview_total(scores, RUBRICS, {2: 8})
    assert before == Decimal("17")
    assert after - before == (8 - 5) * Decimal("2")
    # the source rows are untouched
    assert scores[1].score == 5


def test_validate_score_value_bounds():
    r = rubric(1, 1, max_score=10, name="Impact")
    assert validate_score_value(0, r) == 0
    assert validate_score_value(10, r) == 10
    assert validate_score_value("4", r) == 4
    for bad in (-1, 11, 7.5, None, "x"):
        with pytest.raises(ValidationError):
            validate_score_value(bad, r)


def test_judge_progress_counts_complete_assignments():
    assignments = [SimpleNamespace(judge_id=10, team_id=100), SimpleNamespace(judge_id=10, team_id=101),
                   SimpleNamespace(judge_id=11, team_id=100)]
    scores = [score(1, 10, 100, 1, 7), score(2, 10, 100, 2, 5), score(3, 10, 101, 1, 4)]
    assert judge_progress(10, assignments, scores, 2) == (2, 1)
    assert judge_progress(11, assignments, scores, 2) == (1, 0)


def test_evaluation_to_dict():
    scores = [score(1, 10, 100, 1, 7), score(2, 10, 100, 2, 5)]
    (ev,) = aggregate_evaluations(scores, RUBRICS)
    d = ev.to_dict()
    assert d["total"] == 17.0
    assert d["total_display"] == "17.0"
    assert [s["rubric_id"] for s in d["scores"]] == [1, 2]
