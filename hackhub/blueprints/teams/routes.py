from flask_login import login_required, current_user

from . import bp
from ...errors import NotFound, ValidationError
from ...extensions import db
from ...models.team import Team, TeamMember
from ...models.user import User
from ...services.applications import get_hackathon_or_404
from ...services.ratelimit import invite_code_limiter, requester_key
from ...services import teams as team_service
from ...utils.forms import json_body, ok


def _team(hackathon_id, team_id):
    team = team_service.get_team_or_404(team_id)
    if team.hackathon_id != hackathon_id:
        raise NotFound("Team not found")
    return team


def _team_payload(team):
    members = []
    for m in team.members.order_by(TeamMember.id.asc()).all():
        row = m.to_dict()
        user = db.session.get(User, m.user_id) if m.user_id else None
        row["full_name"] = user.full_name if user else None
        members.append(row)
    return dict(team.to_dict(), members=members)


@bp.get("/mine")
@login_required
def my_team(hackathon_id):
    get_hackathon_or_404(hackathon_id)
    member = team_service.membership_in_hackathon(current_user.id, hackathon_id)
    if not member:
        return ok(team=None)
    team = db.session.get(Team, member.team_id)
    return ok(team=_team_payload(team), membership=member.to_dict())


@bp.get("/<int:team_id>")
@login_required
def team_detail(hackathon_id, team_id):
    team = _team(hackathon_id, team_id)
    team_service.require_member(team, current_user)
    return ok(team=_team_payload(team))


@bp.get("/<int:team_id>/invite-code")
@login_required
def get_invite_code(hackathon_id, team_id):
    team = _team(hackathon_id, team_id)
    team_service.require_leader(team, current_user)
    invite = team_service.active_invite_code(team.id)
    return ok(invite=invite.to_dict() if invite else None)


@bp.post("/<int:team_id>/invite-code")
@login_required
def generate_invite_code(hackathon_id, team_id):
    team = _team(hackathon_id, team_id)
    invite = team_service.generate_invite_code(team, current_user)
    return ok(invite=invite.to_dict(), status=201)


@bp.post("/invite-codes/validate")
def validate_invite_code(hackathon_id):
    """Look up a typed code. Partial codes return ``team: null`` without a lookup."""
    get_hackathon_or_404(hackathon_id)
    code = json_body().get("code")
    if code is not None and not isinstance(code, str):
        raise ValidationError("code must be a string")
    team = team_service.validate_invite_code(code, hackathon_id, invite_code_limiter(), requester_key())
    return ok(team=team)


@bp.post("/<int:team_id>/join")
@login_required
def request_join(hackathon_id, team_id):
    team = _team(hackathon_id, team_id)
    member = team_service.request_to_join(team, current_user, hackathon_id)
    return ok("Join request sent", member=member.to_dict(), status=201)


@bp.get("/<int:team_id>/requests")
@login_required
def join_requests(hackathon_id, team_id):
    team = _team(hackathon_id, team_id)
    team_service.require_leader(team, current_user)
    items = []
    for m in team_service.pending_requests(team):
        user = db.session.get(User, m.user_id) if m.user_id else None
        items.append(dict(m.to_dict(), full_name=user.full_name if user else None))
    return ok(items=items)


@bp.post("/<int:team_id>/requests/<int:member_id>")
@login_required
def respond(hackathon_id, team_id, member_id):
    team = _team(hackathon_id, team_id)
    approved = json_body().get("approved")
    if not isinstance(approved, bool):
        raise ValidationError("approved must be true or false")
    member = team_service.respond_to_request(team, current_user, member_id, approved)
    return ok("Request approved" if approved else "Request declined", member=member)


@bp.delete("/<int:team_id>/members/<int:member_id>")
@login_required
def remove_member(hackathon_id, team_id, member_id):
    team = _team(hackathon_id, team_id)
    removed = team_service.remove_member(team, current_user, member_id)
    return ok("Member removed", member=removed)


@bp.post("/<int:team_id>/leader")
@login_required
def transfer_leader(hackathon_id, team_id):
    team = _team(hackathon_id, team_id)
    member_id = json_body().get("member_id")
    if not isinstance(member_id, int):
        raise ValidationError("member_id is required")
    leader = team_service.transfer_leadership(team, current_user, member_id)
    return ok("Leadership transferred", member=leader.to_dict())


@bp.get("/<int:team_id>/messages")
@login_required
def messages(hackathon_id, team_id):
    team = _team(hackathon_id, team_id)
    return ok(items=[m.to_dict() for m in team_service.list_messages(team, current_user)])


@bp.post("/<int:team_id>/messages")
@login_required
def post_message(hackathon_id, team_id):
    team = _team(hackathon_id, team_id)
    msg = team_service.post_message(team, current_user, json_body().get("message"))
    return ok(message=msg.to_dict(), status=201)
