import re
import secrets
from datetime import datetime, timedelta

from flask import current_app

from ..errors import Conflict, NotFound, PermissionDenied, ValidationError
from ..extensions import db
from ..models.hackathon import Hackathon
from ..models.team import Team, TeamInviteCode, TeamMember, TeamMessage
from ..models.user import User
from .notifications import notify, queue_email

INVITE_CODE_LENGTH = 8
# no 0/O or 1/I so codes survive being read aloud
INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TEAM_ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


def random_code(alphabet=INVITE_CODE_ALPHABET, length=INVITE_CODE_LENGTH):
    return "".join(secrets.choice(alphabet) for _ in range(length))


def normalize_code(raw):
    """Uppercase, drop separators and cut to the code length."""
    return re.sub(r"[^A-Z0-9]", "", (raw or "").upper())[:INVITE_CODE_LENGTH]


def get_team_or_404(team_id):
    team = db.session.get(Team, team_id)
    if not team:
        raise NotFound("Team not found")
    return team


def require_leader(team, user):
    if team.created_by != user.id:
        raise PermissionDenied("Only the team leader can do this")


def membership_in_hackathon(user_id, hackathon_id):
    """The user's accepted or pending membership for the event, if any."""
    return (TeamMember.query.join(Team, Team.id == TeamMember.team_id)
            .filter(Team.hackathon_id == hackathon_id,
                    TeamMember.user_id == user_id,
                    db.or_(TeamMember.accepted.is_(True), TeamMember.join_status == "pending"))
            .first())


def active_invite_code(team_id):
    return (TeamInviteCode.query.filter_by(team_id=team_id, status="active")
            .order_by(TeamInviteCode.created_at.desc(), TeamInviteCode.id.desc()).first())


def generate_invite_code(team, user, now=None):
    """Expire the team's active code and issue a fresh one."""
    require_leader(team, user)
    now = now or datetime.utcnow()
    for old in TeamInviteCode.query.filter_by(team_id=team.id, status="active").all():
        old.status = "expired"

    code = random_code()
    while TeamInviteCode.query.filter_by(code=code).first() is not None:
        code = random_code()

    ttl_days = int(current_app.config.get("INVITE_CODE_TTL_DAYS", 7))
    invite = TeamInviteCode(team_id=team.id, hackathon_id=team.hackathon_id, code=code,
                            created_by=user.id, status="active",
                            expires_at=now + timedelta(days=ttl_days))
    db.session.add(invite)
    db.session.commit()
    current_app.logger.info('Invite code issued team=%s code=%s', team.id, code)
    return invite


def lookup_invite_code(code, hackathon_id, now=None):
    """Team info for an active, unexpired code, or raise.

    Callers must only pass full-length codes; see ``validate_invite_code``.
    """
    now = now or datetime.utcnow()
    invite = TeamInviteCode.query.filter_by(code=code, status="active", hackathon_id=hackathon_id).first()
    if not invite:
        raise NotFound("This invite code is invalid or expired.")
    if invite.expires_at and invite.expires_at < now:
        raise ValidationError("This invite code has expired.")

    team = db.session.get(Team, invite.team_id)
    if not team:
        raise NotFound("This invite code is invalid or expired.")
    hackathon = db.session.get(Hackathon, hackathon_id)
    leader = db.session.get(User, team.created_by) if team.created_by else None
    member_count = team.active_member_count()
    max_size = hackathon.max_team_size if hackathon else None
    return {
        "id": team.id,
        "team_name": team.team_name,
        "hackathon_id": team.hackathon_id,
        "created_by": team.created_by,
        "hackathon": {"title": hackathon.title if hackathon else None, "max_team_size": max_size},
        "leader": {"full_name": leader.display_name if leader else None},
        "memberCount": member_count,
        "isFull": max_size is not None and member_count >= max_size,
    }


def validate_invite_code(raw_code, hackathon_id, limiter, requester):
    """Validate a typed invite code.

    Input is cut to the code length, so pasted trailing text is ignored.
    Returns None for anything shorter than a full code: no lookup is
    made and no attempt is counted. Full-length codes count against the
    requester's rate limit before the lookup.
    """
    code = normalize_code(raw_code)
    if len(code) != INVITE_CODE_LENGTH:
        return None
    limiter.hit(requester)
    return lookup_invite_code(code, hackathon_id)


def request_to_join(team, user, hackathon_id):
    if team.hackathon_id != hackathon_id:
        raise NotFound("Team not found")
    if membership_in_hackathon(user.id, hackathon_id):
        raise Conflict("You are already in a team for this hackathon")
    hackathon = db.session.get(Hackathon, hackathon_id)
    if hackathon and hackathon.max_team_size and team.active_member_count() >= hackathon.max_team_size:
        raise Conflict("This team is already full")

    member = TeamMember(team_id=team.id, user_id=user.id, email=user.email, role="member",
                        accepted=False, join_status="pending")
    db.session.add(member)
    notify(team.created_by, "team_invite", "New Join Request",
           f'Someone wants to join your team "{team.team_name}"',
           team_id=team.id, requester_id=user.id, hackathon_id=hackathon_id)
    db.session.commit()
    return member


def pending_requests(team):
    return team.members.filter_by(join_status="pending").order_by(TeamMember.created_at.asc()).all()


def respond_to_request(team, leader, member_id, approved):
    from ..jobs.notify import send_team_request_email

    require_leader(team, leader)
    member = TeamMember.query.filter_by(id=member_id, team_id=team.id, join_status="pending").first()
    if not member:
        raise NotFound("Join request not found")
    hackathon = db.session.get(Hackathon, team.hackathon_id)
    requester = db.session.get(User, member.user_id) if member.user_id else None
    recipient_email = member.email

    if approved:
        if hackathon and hackathon.max_team_size:
            accepted = team.members.filter(TeamMember.accepted.is_(True)).count()
            if accepted >= hackathon.max_team_size:
                raise Conflict("This team is already full")
        member.accepted = True
        member.join_status = "accepted"
        notify(member.user_id, "team_invite", "Request Approved! 🎉",
               "Your request to join the team has been approved!", team_id=team.id, approved=True)
        result = member.to_dict()
    else:
        result = dict(member.to_dict(), join_status="rejected")
        db.session.delete(member)
        notify(member.user_id, "team_invite", "Request Declined",
               "Your request to join the team has been declined.", team_id=team.id, approved=False)
    db.session.commit()

    queue_email(send_team_request_email, recipient_email,
                requester.display_name if requester else None,
                team.team_name, hackathon.title if hackathon else "Unknown Hackathon", bool(approved))
    return result


def remove_member(team, leader, member_id):
    require_leader(team, leader)
    member = TeamMember.query.filter_by(id=member_id, team_id=team.id).first()
    if not member:
        raise NotFound("Member not found")
    if member.role == "leader":
        raise ValidationError("Transfer leadership before removing the leader")
    hackathon = db.session.get(Hackathon, team.hackathon_id)
    removed = member.to_dict()
    db.session.delete(member)
    notify(member.user_id, "team_invite", "Removed from Team",
           f'You have been removed from team "{team.team_name}"'
           + (f" for {hackathon.title}" if hackathon else ""),
           team_id=team.id)
    db.session.commit()
    return removed


def transfer_leadership(team, leader, member_id):
    require_leader(team, leader)
    new_leader = TeamMember.query.filter_by(id=member_id, team_id=team.id, accepted=True).first()
    if not new_leader or not new_leader.user_id:
        raise NotFound("Member not found")
    if new_leader.user_id == leader.id:
        raise ValidationError("You are already the team leader")
    for m in team.members.filter_by(role="leader").all():
        m.role = "member"
    new_leader.role = "leader"
    team.created_by = new_leader.user_id
    notify(new_leader.user_id, "team_invite", "You're the Team Leader",
           f'You are now the leader of team "{team.team_name}"', team_id=team.id)
    db.session.commit()
    return new_leader


def assign_team_unique_id(team):
    if team.team_unique_id:
        return team.team_unique_id
    uid = random_code(TEAM_ID_ALPHABET)
    while Team.query.filter_by(team_unique_id=uid).first() is not None:
        uid = random_code(TEAM_ID_ALPHABET)
    team.team_unique_id = uid
    return uid


def require_member(team, user):
    """Accepted members (and the event's organizers) may read the team's space."""
    member = team.members.filter_by(user_id=user.id, accepted=True).first()
    if member is None:
        hackathon = db.session.get(Hackathon, team.hackathon_id)
        if not (hackathon and hackathon.is_organizer(user)):
            raise PermissionDenied("You are not a member of this team")
    return member


def list_messages(team, user, limit=200):
    require_member(team, user)
    rows = (TeamMessage.query.filter_by(team_id=team.id)
            .order_by(TeamMessage.created_at.desc(), TeamMessage.id.desc()).limit(limit).all())
    return list(reversed(rows))


def post_message(team, user, text):
    text = (text or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if team.members.filter_by(user_id=user.id, accepted=True).first() is None:
        raise PermissionDenied("You are not a member of this team")
    msg = TeamMessage(team_id=team.id, user_id=user.id, message=text[:4000])
    db.session.add(msg)
    db.session.commit()
    return msg
