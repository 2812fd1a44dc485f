"""Judging score aggregation.

The functions here work on any objects exposing the ``JudgeScore`` and
``JudgingRubric`` attributes (model rows or plain records), so they can be
used on query results and on in-memory edits alike.

A (team, judge) evaluation is *complete* when the judge has submitted one
score per rubric of the event. Only complete evaluations get a weighted
total; nothing is estimated for partial ones.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import ValidationError

_DISPLAY_PLACES = Decimal("0.1")


@dataclass
class Evaluation:
    team_id: int
    judge_id: int
    total: Decimal
    scores: List = field(default_factory=list)
    completed_at: Optional[datetime] = None

    @property
    def display_total(self) -> str:
        return format_total(self.total)

    def to_dict(self) -> Dict:
        return {
            "team_id": self.team_id,
            "judge_id": self.judge_id,
            "total": float(self.total),
            "total_display": self.display_total,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "scores": [{"id": getattr(s, "id", None), "rubric_id": s.rubric_id, "score": s.score} for s in self.scores],
        }


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # go through str so 1.1 stays 1.1
        return Decimal(str(value))
    return Decimal(value)


def format_total(total) -> str:
    """One decimal place for display; the stored total is never rounded."""
    return str(to_decimal(total).quantize(_DISPLAY_PLACES, rounding=ROUND_HALF_UP))


def rubric_weights(rubrics: Iterable) -> Dict[int, Decimal]:
    return {r.id: to_decimal(r.weight) for r in rubrics}


def weighted_total(scores: Iterable, weights: Dict[int, Decimal]) -> Decimal:
    total = Decimal(0)
    for s in scores:
        total += to_decimal(s.score) * weights[s.rubric_id]
    return total


def group_submitted(scores: Iterable) -> "OrderedDict[Tuple[int, int], list]":
    """Submitted scores grouped by (team_id, judge_id), in input order."""
    groups: "OrderedDict[Tuple[int, int], list]" = OrderedDict()
    for s in scores:
        if not s.submitted:
            continue
        groups.setdefault((s.team_id, s.judge_id), []).append(s)
    return groups


def aggregate_evaluations(scores: Iterable, rubrics: Sequence) -> List[Evaluation]:
    """Weighted totals for every fully-scored (team, judge) pair.

    Pairs whose submitted score count differs from the rubric count are
    dropped. An event without rubrics produces no evaluations.
    """
    rubrics = list(rubrics)
    if not rubrics:
        return []
    weights = rubric_weights(rubrics)
    rubric_count = len(rubrics)

    out = []
    for (team_id, judge_id), group in group_submitted(scores).items():
        if len(group) != rubric_count:
            continue
        # a score pointing at another event's rubric cannot complete this one
        if any(s.rubric_id not in weights for s in group):
            continue
        stamps = [s.submitted_at for s in group if getattr(s, "submitted_at", None)]
        out.append(Evaluation(
            team_id=team_id,
            judge_id=judge_id,
            total=weighted_total(group, weights),
            scores=group,
            completed_at=max(stamps) if stamps else None,
        ))
    return out


def is_evaluation_complete(scores: Iterable, judge_id: int, team_id: int, rubric_count: int) -> bool:
    submitted = sum(1 for s in scores if s.judge_id == judge_id and s.team_id == team_id and s.submitted)
    return submitted >= 1 and submitted == rubric_count


def judge_progress(judge_id: int, assignments: Iterable, scores: Sequence, rubric_count: int) -> Tuple[int, int]:
    """(total_assigned, evaluated_teams) for one judge."""
    scores = list(scores)
    team_ids = [a.team_id for a in assignments if a.judge_id == judge_id]
    evaluated = sum(1 for t in team_ids if is_evaluation_complete(scores, judge_id, t, rubric_count))
    return len(team_ids), evaluated


def _rank_key(ev: Evaluation):
    # datetime.max sorts undated evaluations after dated ones
    return (-ev.total, ev.completed_at or datetime.max, ev.team_id, ev.judge_id)


def rank_evaluations(evaluations: Iterable[Evaluation]) -> List[Evaluation]:
    """Highest total first; ties go to the evaluation completed first."""
    return sorted(evaluations, key=_rank_key)


def leaderboard(scores: Iterable, rubrics: Sequence) -> List[Evaluation]:
    return rank_evaluations(aggregate_evaluations(scores, rubrics))


def validate_score_value(value, rubric) -> int:
    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Score for '{rubric.name}' must be a whole number")
    if ivalue != value and not isinstance(value, str):
        raise ValidationError(f"Score for '{rubric.name}' must be a whole number")
    if ivalue < 0 or ivalue > rubric.max_score:
        raise ValidationError(f"Score for '{rubric.name}' must be between 0 and {rubric.max_score}")
    return ivalue


@dataclass
class _EditedScore:
    id: int
    rubric_id: int
    score: int


def preview_total(scores: Iterable, rubrics: Sequence, edits: Dict[int, int]) -> Decimal:
    """Weighted total of ``scores`` with ``edits`` (score id -> new value) applied in memory."""
    weights = rubric_weights(rubrics)
    edited = [
        _EditedScore(id=s.id, rubric_id=s.rubric_id, score=edits.get(s.id, s.score))
        for s in scores
    ]
    return weighted_total(edited, weights)
