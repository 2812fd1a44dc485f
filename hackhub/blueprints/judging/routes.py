from flask import jsonify
from flask_login import login_required, current_user

from . import bp
from .forms import JudgeForm, RubricForm
from ...errors import NotFound, ValidationError, form_error
from ...extensions import db
from ...models.judging import Judge, JudgingRubric
from ...services import scoring
from ...services.applications import get_hackathon_or_404
from ...services.judging import format_total
from ...utils.decorators import require_hackathon_organizer
from ...utils.forms import json_body, ok


def _organized(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    require_hackathon_organizer(hackathon)
    return hackathon


def _rubric(hackathon_id, rubric_id):
    rubric = db.session.get(JudgingRubric, rubric_id)
    if not rubric or rubric.hackathon_id != hackathon_id:
        raise NotFound("Rubric not found")
    return rubric


def _judge(hackathon_id, judge_id):
    judge = db.session.get(Judge, judge_id)
    if not judge or judge.hackathon_id != hackathon_id:
        raise NotFound("Judge not found")
    return judge


# --- organizer: rubrics ------------------------------------------------------

@bp.get("/rubrics")
@login_required
def list_rubrics(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    if not hackathon.is_organizer(current_user):
        scoring.judge_for_user(hackathon_id, current_user)
    return ok(items=[scoring.rubric_dict(r) for r in scoring.event_rubrics(hackathon_id)])


@bp.post("/rubrics")
@login_required
def create_rubric(hackathon_id):
    hackathon = _organized(hackathon_id)
    form = RubricForm()
    if not form.validate_on_submit():
        raise form_error(form)
    rubric = scoring.add_rubric(
        hackathon, form.name.data.strip(), description=form.description.data or None,
        max_score=form.max_score.data or 10,
        weight=form.weight.data if form.weight.data is not None else 1,
        sort_order=form.sort_order.data)
    return ok(rubric=rubric.to_dict(), status=201)


@bp.patch("/rubrics/<int:rubric_id>")
@login_required
def edit_rubric(hackathon_id, rubric_id):
    _organized(hackathon_id)
    rubric = _rubric(hackathon_id, rubric_id)
    data = json_body()
    scoring.update_rubric(rubric, name=(data.get("name") or "").strip() or None,
                          description=data.get("description"), max_score=data.get("max_score"),
                          weight=data.get("weight"), sort_order=data.get("sort_order"))
    return ok(rubric=rubric.to_dict())


@bp.delete("/rubrics/<int:rubric_id>")
@login_required
def remove_rubric(hackathon_id, rubric_id):
    _organized(hackathon_id)
    scoring.delete_rubric(_rubric(hackathon_id, rubric_id))
    return ok("Rubric deleted")


# --- organizer: judges and assignments -------------------------------------------

@bp.get("/judges")
@login_required
def list_judges(hackathon_id):
    _organized(hackathon_id)
    assignments = scoring.event_assignments(hackathon_id)
    items = []
    for j in scoring.event_judges(hackathon_id):
        items.append({"id": j.id, "email": j.email, "user_id": j.user_id,
                      "team_ids": [a.team_id for a in assignments if a.judge_id == j.id]})
    return ok(items=items)


@bp.post("/judges")
@login_required
def create_judge(hackathon_id):
    hackathon = _organized(hackathon_id)
    form = JudgeForm()
    if not form.validate_on_submit():
        raise form_error(form)
    judge = scoring.add_judge(hackathon, form.email.data, current_user)
    return ok(judge=judge.to_dict(), status=201)


@bp.delete("/judges/<int:judge_id>")
@login_required
def delete_judge(hackathon_id, judge_id):
    _organized(hackathon_id)
    scoring.remove_judge(_judge(hackathon_id, judge_id))
    return ok("Judge removed")


@bp.put("/judges/<int:judge_id>/assignments")
@login_required
def assign(hackathon_id, judge_id):
    _organized(hackathon_id)
    judge = _judge(hackathon_id, judge_id)
    team_ids = json_body().get("team_ids")
    if not isinstance(team_ids, list) or not all(isinstance(t, int) for t in team_ids):
        raise ValidationError("team_ids must be a list of team ids")
    return ok(team_ids=scoring.set_assignments(judge, team_ids))


@bp.get("/teams")
@login_required
def assignable_teams(hackathon_id):
    _organized(hackathon_id)
    return ok(items=[t.to_dict() for t in scoring.accepted_teams(hackathon_id)])


# --- organizer: phase, results and overrides --------------------------------------

@bp.post("/open")
@login_required
def open_judging(hackathon_id):
    hackathon = scoring.open_judging(_organized(hackathon_id))
    return ok("Judging opened", hackathon=hackathon.to_dict())


@bp.post("/close")
@login_required
def close_judging(hackathon_id):
    hackathon = scoring.close_judging(_organized(hackathon_id))
    return ok("Judging closed", hackathon=hackathon.to_dict())


@bp.get("/results")
@login_required
def results(hackathon_id):
    _organized(hackathon_id)
    return ok(**scoring.results(hackathon_id))


@bp.patch("/scores/<int:score_id>")
@login_required
def override_score(hackathon_id, score_id):
    _organized(hackathon_id)
    score = scoring.update_score(score_id, json_body().get("score"), hackathon_id=hackathon_id)
    return ok(score=score.to_dict())


@bp.post("/scores/batch")
@login_required
def batch_edit(hackathon_id):
    """Apply several overrides; stops at the first bad one and keeps what was written."""
    _organized(hackathon_id)
    edits = json_body().get("edits")
    if not isinstance(edits, list):
        raise ValidationError("edits must be a list of {score_id, score}")
    pairs = []
    for e in edits:
        if not isinstance(e, dict) or "score_id" not in e:
            raise ValidationError("edits must be a list of {score_id, score}")
        pairs.append((e["score_id"], e.get("score")))
    applied, error = scoring.apply_score_edits(hackathon_id, pairs)
    if error:
        body = {"ok": False, "error": error["error"], "failed": error["score_id"], "applied": applied}
        return jsonify(body), 400
    return ok(applied=applied)


@bp.post("/scores/preview")
@login_required
def preview(hackathon_id):
    _organized(hackathon_id)
    data = json_body()
    try:
        judge_id, team_id = int(data.get("judge_id")), int(data.get("team_id"))
        edits = {int(k): v for k, v in (data.get("edits") or {}).items()}
    except (TypeError, ValueError, AttributeError):
        raise ValidationError("judge_id, team_id and edits {score_id: value} are required")
    total = scoring.preview_edit_total(hackathon_id, judge_id, team_id, edits)
    return ok(total=float(total), total_display=format_total(total))


# --- judge -------------------------------------------------------------------------

@bp.get("/me")
@login_required
def my_dashboard(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    judge = scoring.judge_for_user(hackathon_id, current_user)
    return ok(judging_open=bool(hackathon.judging_open), **scoring.judge_dashboard(hackathon_id, judge))


@bp.put("/me/teams/<int:team_id>/scores")
@login_required
def score_team(hackathon_id, team_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    judge = scoring.judge_for_user(hackathon_id, current_user)
    data = json_body()
    values = data.get("scores") or {}
    if not isinstance(values, dict):
        raise ValidationError("scores must map rubric ids to values")
    try:
        values = {int(k): v for k, v in values.items()}
    except (TypeError, ValueError):
        raise ValidationError("scores must map rubric ids to values")
    rows = scoring.save_scores(hackathon, judge, team_id, values, submit=bool(data.get("submit")))
    return ok("Scores submitted" if data.get("submit") else "Scores saved",
              scores=[r.to_dict() for r in rows])
