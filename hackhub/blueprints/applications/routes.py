from email_validator import EmailNotValidError, validate_email
from flask import request
from flask_login import login_required, current_user

from . import bp
from .forms import ApplicationForm
from ...errors import NotFound, PermissionDenied, ValidationError, form_error
from ...extensions import db
from ...models.application import Application, APPLICATION_STATUSES
from ...models.team import Team, TeamMember
from ...models.user import User
from ...services.applications import (decide_application, existing_application, get_hackathon_or_404,
                                       submit_application)
from ...services.storage import public_url, save_file
from ...utils.decorators import require_hackathon_organizer
from ...utils.forms import json_body, ok


def _member_emails(raw):
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("team_members must be a list of emails")
    emails = []
    for value in raw:
        if not value:
            continue
        try:
            emails.append(validate_email(str(value), check_deliverability=False).normalized)
        except EmailNotValidError as e:
            raise ValidationError(f"Invalid email {value}: {e}")
    return emails


def _application_or_404(hackathon_id, application_id):
    app_row = db.session.get(Application, application_id)
    if not app_row or app_row.hackathon_id != hackathon_id:
        raise NotFound("Application not found")
    return app_row


def _with_team(app_row):
    row = app_row.to_dict()
    row["presentation_url"] = public_url(app_row.presentation_url)
    team = db.session.get(Team, app_row.team_id) if app_row.team_id else None
    if team:
        members = team.members.order_by(TeamMember.id.asc()).all()
        row["team"] = dict(team.to_dict(), members=[m.to_dict() for m in members])
    else:
        row["team"] = None
    user = db.session.get(User, app_row.user_id)
    row["applicant"] = user.to_dict() if user else None
    return row


@bp.post("")
@login_required
def submit(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    form = ApplicationForm()
    if not form.validate_on_submit():
        raise form_error(form)
    app_row = submit_application(
        hackathon, current_user,
        team_name=form.team_name.data.strip(),
        member_emails=_member_emails(json_body().get("team_members")),
        project_idea=form.project_idea.data or None,
        why_join=form.why_join.data or None,
        domain=form.domain.data or None,
        abstract=form.abstract.data or None,
    )
    return ok("Application submitted", application=_with_team(app_row), status=201)


@bp.get("/mine")
@login_required
def mine(hackathon_id):
    app_row = existing_application(current_user.id, hackathon_id)
    return ok(application=_with_team(app_row) if app_row else None)


@bp.get("")
@login_required
def list_applications(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    require_hackathon_organizer(hackathon)
    query = Application.query.filter_by(hackathon_id=hackathon_id)
    status = request.args.get("status")
    if status:
        if status not in APPLICATION_STATUSES:
            raise ValidationError(f"Unknown status {status}")
        query = query.filter_by(status=status)
    rows = query.order_by(Application.submitted_at.desc(), Application.id.desc()).all()
    return ok(items=[_with_team(a) for a in rows])


@bp.get("/<int:application_id>")
@login_required
def detail(hackathon_id, application_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    app_row = _application_or_404(hackathon_id, application_id)
    if app_row.user_id != current_user.id and not hackathon.is_organizer(current_user):
        raise PermissionDenied("You cannot view this application")
    return ok(application=_with_team(app_row))


@bp.post("/<int:application_id>/decision")
@login_required
def decide(hackathon_id, application_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    require_hackathon_organizer(hackathon)
    app_row = _application_or_404(hackathon_id, application_id)
    decide_application(app_row, (json_body().get("status") or "").strip())
    return ok(application=_with_team(app_row))


@bp.post("/<int:application_id>/presentation")
@login_required
def upload_presentation(hackathon_id, application_id):
    app_row = _application_or_404(hackathon_id, application_id)
    if app_row.user_id != current_user.id:
        raise PermissionDenied("Only the applicant can upload a presentation")
    f = request.files.get("file")
    if not f:
        raise ValidationError("file is required")
    app_row.presentation_url = save_file(f, "team-presentations", app_row.team_id or current_user.id)
    db.session.commit()
    return ok(application=_with_team(app_row))
