from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from types import SimpleNamespace

from flask import current_app

from ..errors import Conflict, NotFound, PermissionDenied, ValidationError
from ..extensions import db
from ..models.application import Application
from ..models.judging import Judge, JudgeAssignment, JudgeScore, JudgingRubric
from ..models.project import Project
from ..models.team import Team
from ..models.user import User
from .cache import cache
from .judging import (is_evaluation_complete, judge_progress, leaderboard, preview_total,
                      validate_score_value)

RUBRIC_COLS = ("id", "hackathon_id", "name", "description", "max_score", "weight", "sort_order")
SCORE_COLS = ("id", "judge_id", "team_id", "hackathon_id", "rubric_id", "score", "submitted", "submitted_at")
ASSIGNMENT_COLS = ("id", "judge_id", "team_id", "hackathon_id")
JUDGE_COLS = ("id", "hackathon_id", "email", "user_id")

# judging_rubrics.weight is Numeric(6, 2)
WEIGHT_PLACES = Decimal("0.01")
MAX_WEIGHT = Decimal("9999.99")


def _snapshot(rows, cols):
    # detached plain records so cached reads never touch an expired session
    return [SimpleNamespace(**{c: getattr(r, c) for c in cols}) for r in rows]


def event_rubrics(hackathon_id):
    return cache.get_or_load(
        ("judging-rubrics", hackathon_id),
        lambda: _snapshot(JudgingRubric.query.filter_by(hackathon_id=hackathon_id)
                          .order_by(JudgingRubric.sort_order.asc(), JudgingRubric.id.asc()).all(), RUBRIC_COLS),
        tables=("judging_rubrics",), where={"hackathon_id": hackathon_id})


def event_scores(hackathon_id):
    return cache.get_or_load(
        ("judge-scores", hackathon_id),
        lambda: _snapshot(JudgeScore.query.filter_by(hackathon_id=hackathon_id)
                          .order_by(JudgeScore.id.asc()).all(), SCORE_COLS),
        tables=("judge_scores",), where={"hackathon_id": hackathon_id})


def event_assignments(hackathon_id):
    return cache.get_or_load(
        ("judge-assignments", hackathon_id),
        lambda: _snapshot(JudgeAssignment.query.filter_by(hackathon_id=hackathon_id)
                          .order_by(JudgeAssignment.id.asc()).all(), ASSIGNMENT_COLS),
        tables=("judge_team_assignments",), where={"hackathon_id": hackathon_id})


def event_judges(hackathon_id):
    return cache.get_or_load(
        ("judges", hackathon_id),
        lambda: _snapshot(Judge.query.filter_by(hackathon_id=hackathon_id)
                          .order_by(Judge.id.asc()).all(), JUDGE_COLS),
        tables=("judges",), where={"hackathon_id": hackathon_id})


def accepted_teams(hackathon_id):
    team_ids = [a.team_id for a in Application.query.filter_by(hackathon_id=hackathon_id, status="accepted").all()
                if a.team_id]
    if not team_ids:
        return []
    return Team.query.filter(Team.id.in_(team_ids)).order_by(Team.id.asc()).all()


# --- rubrics -------------------------------------------------------------

def _parse_rubric_fields(max_score, weight):
    try:
        max_score = int(max_score)
        weight = Decimal(str(weight)).quantize(WEIGHT_PLACES, rounding=ROUND_HALF_UP)
        if not weight.is_finite():
            raise InvalidOperation
    except (TypeError, ValueError, InvalidOperation):
        raise ValidationError("max_score must be an integer and weight a number")
    if max_score <= 0:
        raise ValidationError("max_score must be greater than 0")
    if weight <= 0:
        raise ValidationError("weight must be at least 0.01")
    if weight > MAX_WEIGHT:
        raise ValidationError(f"weight must be at most {MAX_WEIGHT}")
    return max_score, weight


def add_rubric(hackathon, name, description=None, max_score=10, weight=1, sort_order=None):
    max_score, weight = _parse_rubric_fields(max_score, weight)
    if sort_order is None:
        sort_order = JudgingRubric.query.filter_by(hackathon_id=hackathon.id).count()
    rubric = JudgingRubric(hackathon_id=hackathon.id, name=name, description=description,
                           max_score=max_score, weight=weight, sort_order=sort_order)
    db.session.add(rubric)
    db.session.commit()
    return rubric


def update_rubric(rubric, name=None, description=None, max_score=None, weight=None, sort_order=None):
    max_score, weight = _parse_rubric_fields(
        rubric.max_score if max_score is None else max_score,
        rubric.weight if weight is None else weight)
    if JudgeScore.query.filter_by(rubric_id=rubric.id).filter(JudgeScore.score > max_score).count():
        raise Conflict("Existing scores exceed the new max_score")
    if name:
        rubric.name = name
    if description is not None:
        rubric.description = description
    if sort_order is not None:
        rubric.sort_order = int(sort_order)
    rubric.max_score = max_score
    rubric.weight = weight
    db.session.commit()
    return rubric


def delete_rubric(rubric):
    hackathon = rubric.hackathon_id
    JudgeScore.query.filter_by(rubric_id=rubric.id).delete(synchronize_session=False)
    db.session.delete(rubric)
    db.session.commit()
    # bulk delete above bypasses the change feed
    cache.invalidate(("judge-scores", hackathon))


# --- judges and assignments ------------------------------------------------

def add_judge(hackathon, email, added_by):
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if Judge.query.filter_by(hackathon_id=hackathon.id, email=email).first():
        raise Conflict("This person is already a judge")
    user = User.query.filter(db.func.lower(User.email) == email).first()
    judge = Judge(hackathon_id=hackathon.id, email=email, user_id=user.id if user else None, added_by=added_by.id)
    db.session.add(judge)
    db.session.commit()
    current_app.logger.info('Judge %s added to hackathon=%s (linked user=%s)', email, hackathon.id, judge.user_id)
    return judge


def remove_judge(judge):
    # assignments and scores go with the judge
    db.session.delete(judge)
    db.session.commit()


def set_assignments(judge, team_ids):
    """Replace the judge's assigned teams with ``team_ids``."""
    wanted = {int(t) for t in team_ids}
    allowed = {t.id for t in accepted_teams(judge.hackathon_id)}
    unknown = wanted - allowed
    if unknown:
        raise ValidationError(f"Teams not accepted for this hackathon: {sorted(unknown)}")

    current = {a.team_id: a for a in JudgeAssignment.query.filter_by(judge_id=judge.id).all()}
    for team_id, row in current.items():
        if team_id not in wanted:
            db.session.delete(row)
    for team_id in sorted(wanted - set(current)):
        db.session.add(JudgeAssignment(judge_id=judge.id, team_id=team_id, hackathon_id=judge.hackathon_id))
    db.session.commit()
    return sorted(wanted)


def judge_for_user(hackathon_id, user):
    judge = Judge.query.filter_by(hackathon_id=hackathon_id, user_id=user.id).first()
    if not judge:
        # judges added before signing up get linked on first visit
        judge = Judge.query.filter(Judge.hackathon_id == hackathon_id,
                                   db.func.lower(Judge.email) == user.email.lower()).first()
        if judge and judge.user_id is None:
            judge.user_id = user.id
            db.session.commit()
    if not judge or judge.user_id != user.id:
        raise PermissionDenied("You are not a judge for this hackathon")
    return judge


# --- judging phase ---------------------------------------------------------

def open_judging(hackathon):
    if not JudgingRubric.query.filter_by(hackathon_id=hackathon.id).count():
        raise ValidationError("Add at least one rubric before opening judging")
    hackathon.judging_open = True
    db.session.commit()
    return hackathon


def close_judging(hackathon):
    hackathon.judging_open = False
    db.session.commit()
    return hackathon


# --- scores ----------------------------------------------------------------

def save_scores(hackathon, judge, team_id, values, submit=False, now=None):
    """Upsert the judge's scores for one team; ``submit`` marks them final.

    Submitting requires a score for every rubric of the event.
    """
    if not hackathon.judging_open:
        raise ValidationError("Judging is not open for this hackathon")
    if not JudgeAssignment.query.filter_by(judge_id=judge.id, team_id=team_id).first():
        raise PermissionDenied("This team is not assigned to you")
    rubrics = {r.id: r for r in JudgingRubric.query.filter_by(hackathon_id=hackathon.id).all()}
    values = {int(k): v for k, v in (values or {}).items()}
    foreign = set(values) - set(rubrics)
    if foreign:
        raise ValidationError(f"Unknown rubric(s): {sorted(foreign)}")
    cleaned = {rid: validate_score_value(v, rubrics[rid]) for rid, v in values.items()}

    existing = {s.rubric_id: s for s in JudgeScore.query.filter_by(judge_id=judge.id, team_id=team_id).all()}
    if submit:
        missing = [r.name for rid, r in rubrics.items() if rid not in cleaned and rid not in existing]
        if missing:
            raise ValidationError(f"Score every rubric before submitting (missing: {', '.join(missing)})")

    now = now or datetime.utcnow()
    for rid, value in cleaned.items():
        row = existing.get(rid)
        if row is None:
            row = JudgeScore(judge_id=judge.id, team_id=team_id, hackathon_id=hackathon.id, rubric_id=rid)
            db.session.add(row)
            existing[rid] = row
        row.score = value
    if submit:
        for row in existing.values():
            row.submitted = True
            row.submitted_at = now
    db.session.commit()
    return sorted(existing.values(), key=lambda s: s.rubric_id)


def update_score(score_id, value, hackathon_id=None):
    """Organizer override of one submitted score, written immediately."""
    score = db.session.get(JudgeScore, score_id)
    if not score or (hackathon_id is not None and score.hackathon_id != hackathon_id):
        raise NotFound("Score not found")
    if not score.submitted:
        raise ValidationError("Only submitted scores can be overridden")
    rubric = db.session.get(JudgingRubric, score.rubric_id)
    score.score = validate_score_value(value, rubric)
    db.session.commit()
    current_app.logger.info('Score %s overridden to %s', score.id, score.score)
    return score


def apply_score_edits(hackathon_id, edits):
    """Apply (score_id, value) edits one write at a time.

    Each edit is committed on its own; the first failure stops the run and
    leaves the earlier edits in place.
    """
    applied = []
    for score_id, value in edits:
        try:
            update_score(int(score_id), value, hackathon_id=hackathon_id)
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning('Score edit %s failed after %s applied: %s', score_id, len(applied), e)
            return applied, {"score_id": score_id, "error": getattr(e, "message", str(e))}
        applied.append(int(score_id))
    return applied, None


def preview_edit_total(hackathon_id, judge_id, team_id, edits):
    """Total the (judge, team) group would have with ``edits`` written.

    Edits are checked the way ``update_score`` checks them, so a preview never
    shows a total the write would refuse.
    """
    rubrics = {r.id: r for r in event_rubrics(hackathon_id)}
    group = {s.id: s for s in event_scores(hackathon_id) if s.judge_id == judge_id and s.team_id == team_id}
    cleaned = {}
    for score_id, value in (edits or {}).items():
        row = group.get(int(score_id))
        if row is None:
            raise NotFound(f"Score {score_id} does not belong to this evaluation")
        if not row.submitted:
            raise ValidationError("Only submitted scores can be overridden")
        cleaned[row.id] = validate_score_value(value, rubrics[row.rubric_id])
    return preview_total(list(group.values()), list(rubrics.values()), cleaned)


# --- read side ---------------------------------------------------------------

def judge_dashboard(hackathon_id, judge):
    rubrics = event_rubrics(hackathon_id)
    scores = event_scores(hackathon_id)
    team_ids = [a.team_id for a in event_assignments(hackathon_id) if a.judge_id == judge.id]
    teams = {t.id: t for t in Team.query.filter(Team.id.in_(team_ids)).all()} if team_ids else {}
    abstracts = {}
    if team_ids:
        for a in Application.query.filter(Application.team_id.in_(team_ids)).all():
            abstracts[a.team_id] = a
    items = []
    for tid in team_ids:
        team = teams.get(tid)
        app_row = abstracts.get(tid)
        own = [s for s in scores if s.judge_id == judge.id and s.team_id == tid]
        items.append({
            "team_id": tid,
            "team_name": team.team_name if team else "Unknown",
            "abstract": app_row.abstract if app_row else None,
            "presentation_url": app_row.presentation_url if app_row else None,
            "completed": is_evaluation_complete(scores, judge.id, tid, len(rubrics)),
            "scores": {s.rubric_id: s.score for s in own},
        })
    return {
        "judge": {"id": judge.id, "email": judge.email},
        "rubrics": [rubric_dict(r) for r in rubrics],
        "teams": items,
    }


def rubric_dict(r):
    return {"id": r.id, "name": r.name, "description": r.description, "max_score": r.max_score,
            "weight": float(r.weight), "sort_order": r.sort_order}


def results(hackathon_id):
    rubrics = event_rubrics(hackathon_id)
    scores = event_scores(hackathon_id)
    assignments = event_assignments(hackathon_id)
    judges = event_judges(hackathon_id)
    team_names = {t.id: t.team_name for t in accepted_teams(hackathon_id)}
    judge_emails = {j.id: j.email for j in judges}

    ranked = leaderboard(scores, rubrics)
    entries = []
    for pos, ev in enumerate(ranked, start=1):
        row = ev.to_dict()
        row.update({"rank": pos,
                    "team_name": team_names.get(ev.team_id, "Unknown"),
                    "judge_email": judge_emails.get(ev.judge_id, "Unknown")})
        entries.append(row)

    stats = []
    for j in judges:
        total_assigned, evaluated = judge_progress(j.id, assignments, scores, len(rubrics))
        stats.append({"judge_id": j.id, "email": j.email, "total_assigned": total_assigned, "evaluated_teams": evaluated})

    return {
        "rubric_count": len(rubrics),
        "total_teams_evaluated": len({ev.team_id for ev in ranked}),
        "judges": stats,
        "leaderboard": entries,
    }


def set_winner(project, position):
    """Give ``project`` the winner slot, taking it from whoever held it."""
    if position is None:
        project.winner_position = None
    else:
        position = int(position)
        if position < 1:
            raise ValidationError("Winner position must be 1 or greater")
        for p in Project.query.filter_by(hackathon_id=project.hackathon_id, winner_position=position).all():
            if p.id != project.id:
                p.winner_position = None
        project.winner_position = position
    db.session.commit()
    return project

