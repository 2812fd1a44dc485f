from flask import current_app, request
from flask_login import login_required, current_user
from werkzeug.datastructures import MultiDict

from . import bp
from .forms import HackathonForm
from ...errors import NotFound, ValidationError, form_error
from ...extensions import db, rq
from ...jobs.notify import notify_gallery_open
from ...models.hackathon import Hackathon, HACKATHON_STATUSES
from ...services.applications import get_hackathon_or_404
from ...utils.decorators import organizer_required, require_hackathon_organizer
from ...utils.forms import json_body, ok

EDITABLE_FIELDS = ("title", "tagline", "description", "rules", "location", "mode", "start_date",
                   "end_date", "application_deadline", "min_team_size", "max_team_size", "banner_url")


def _apply(hackathon, form, fields):
    for field in fields:
        value = getattr(form, field).data
        setattr(hackathon, field, None if value == "" else value)


@bp.get("")
def list_hackathons():
    query = Hackathon.query
    status = request.args.get("status")
    if request.args.get("mine") and current_user.is_authenticated:
        query = query.filter_by(created_by=current_user.id)
    elif status:
        if status not in HACKATHON_STATUSES or status == "draft":
            raise ValidationError(f"Unknown status {status}")
        query = query.filter_by(status=status)
    else:
        # drafts are only listed for their organizers
        query = query.filter(Hackathon.status != "draft")
    q = request.args.get("q")
    if q:
        query = query.filter(Hackathon.title.ilike(f"%{q}%"))
    items = query.order_by(Hackathon.start_date.desc(), Hackathon.id.desc()).all()
    return ok(items=[h.to_dict() for h in items])


@bp.post("")
@organizer_required
def create_hackathon():
    form = HackathonForm()
    if not form.validate_on_submit():
        raise form_error(form)
    hackathon = Hackathon(created_by=current_user.id, status="draft")
    _apply(hackathon, form, EDITABLE_FIELDS)
    hackathon.mode = hackathon.mode or "online"
    hackathon.min_team_size = hackathon.min_team_size or 1
    hackathon.max_team_size = hackathon.max_team_size or 4
    db.session.add(hackathon)
    db.session.commit()
    current_app.logger.info('Hackathon %s created by user=%s', hackathon.id, current_user.id)
    return ok(hackathon=hackathon.to_dict(), status=201)


@bp.get("/<int:hackathon_id>")
def detail(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    if hackathon.status == "draft" and not hackathon.is_organizer(current_user):
        raise NotFound("Hackathon not found")
    return ok(hackathon=hackathon.to_dict())


@bp.patch("/<int:hackathon_id>")
@login_required
def update(hackathon_id):
    """Partial update: fields missing from the body keep their stored value."""
    hackathon = get_hackathon_or_404(hackathon_id)
    require_hackathon_organizer(hackathon)
    data = {k: v for k, v in json_body().items() if k in EDITABLE_FIELDS}
    merged = {k: v for k, v in hackathon.to_dict().items() if k in EDITABLE_FIELDS}
    merged.update(data)
    form = HackathonForm(formdata=MultiDict({k: "" if v is None else v for k, v in merged.items()}))
    if not form.validate():
        raise form_error(form)
    _apply(hackathon, form, data.keys())
    db.session.commit()
    return ok(hackathon=hackathon.to_dict())


@bp.post("/<int:hackathon_id>/status")
@login_required
def change_status(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    require_hackathon_organizer(hackathon)
    status = (json_body().get("status") or "").strip()
    if status not in HACKATHON_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(HACKATHON_STATUSES)}")
    previous = hackathon.status
    hackathon.status = status
    db.session.commit()
    current_app.logger.info('Hackathon %s status %s -> %s', hackathon.id, previous, status)
    return ok(hackathon=hackathon.to_dict())


@bp.post("/<int:hackathon_id>/gallery/open")
@login_required
def open_gallery(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    require_hackathon_organizer(hackathon)
    if hackathon.gallery_open:
        return ok("Gallery is already open", hackathon=hackathon.to_dict())
    hackathon.gallery_open = True
    db.session.commit()
    rq.enqueue(notify_gallery_open, hackathon.id)
    return ok("Gallery opened", hackathon=hackathon.to_dict())


@bp.post("/<int:hackathon_id>/gallery/close")
@login_required
def close_gallery(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    require_hackathon_organizer(hackathon)
    hackathon.gallery_open = False
    db.session.commit()
    return ok(hackathon=hackathon.to_dict())
