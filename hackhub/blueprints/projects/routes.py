from flask import request
from flask_login import login_required, current_user

from . import bp
from ...errors import PermissionDenied, ValidationError
from ...services.applications import get_hackathon_or_404
from ...services.projects import (PROJECT_FIELDS, add_screenshot, gallery, get_project_or_404,
                                  require_project_member, save_project, team_project, toggle_vote)
from ...services.scoring import set_winner
from ...services.storage import save_file
from ...services.teams import membership_in_hackathon
from ...utils.decorators import require_hackathon_organizer
from ...utils.forms import json_body, ok


@bp.get("")
def list_gallery(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    if not hackathon.gallery_open and not hackathon.is_organizer(current_user):
        raise PermissionDenied("The project gallery is not open")
    return ok(items=gallery(hackathon_id, current_user))


@bp.get("/mine")
@login_required
def my_project(hackathon_id):
    member = membership_in_hackathon(current_user.id, hackathon_id)
    project = team_project(member.team_id) if member and member.accepted else None
    return ok(project=project.to_dict() if project else None)


@bp.post("")
@login_required
def save(hackathon_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    data = json_body()
    fields = {k: data[k] for k in PROJECT_FIELDS if k in data}
    if "tech_stack" in fields and not isinstance(fields["tech_stack"], list):
        raise ValidationError("tech_stack must be a list")
    project = save_project(hackathon, current_user, fields, submit=bool(data.get("submit")))
    return ok(project=project.to_dict())


@bp.post("/<int:project_id>/vote")
@login_required
def vote(hackathon_id, project_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    if not hackathon.gallery_open:
        raise ValidationError("The project gallery is not open")
    project = get_project_or_404(hackathon_id, project_id)
    voted, count = toggle_vote(project, current_user)
    return ok(voted=voted, votes=count)


@bp.post("/<int:project_id>/screenshots")
@login_required
def upload_screenshot(hackathon_id, project_id):
    project = get_project_or_404(hackathon_id, project_id)
    require_project_member(project, current_user)
    f = request.files.get("file")
    if not f:
        raise ValidationError("file is required")
    url = save_file(f, "project-screenshots", project.id)
    add_screenshot(project, url)
    return ok(project=project.to_dict(), status=201)


@bp.post("/<int:project_id>/winner")
@login_required
def winner(hackathon_id, project_id):
    hackathon = get_hackathon_or_404(hackathon_id)
    require_hackathon_organizer(hackathon)
    project = get_project_or_404(hackathon_id, project_id)
    position = json_body().get("position")
    if position is not None and not isinstance(position, int):
        raise ValidationError("position must be an integer or null")
    set_winner(project, position)
    return ok(project=project.to_dict())
