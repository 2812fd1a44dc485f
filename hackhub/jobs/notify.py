from flask import current_app, has_app_context

from ..extensions import db
from ..models.application import Application
from ..models.hackathon import Hackathon
from ..models.team import Team, TeamMember
from ..models.user import User
from ..services.mail import send_mail
from ..services.notifications import notify


def _in_app_context(func, *args):
    """Workers run outside Flask; build the app for them."""
    if has_app_context():
        return func(*args)
    from hackhub import create_app
    app = create_app()
    with app.app_context():
        return func(*args)


def _application_status_mail(application_id, status):
    app_row = db.session.get(Application, application_id)
    if not app_row:
        return None
    user = db.session.get(User, app_row.user_id)
    hackathon = db.session.get(Hackathon, app_row.hackathon_id)
    team = db.session.get(Team, app_row.team_id) if app_row.team_id else None
    if not user or not hackathon:
        return None

    name = user.full_name or "Participant"
    if status == "accepted":
        subject = f"You're in! Welcome to {hackathon.title}"
        body = (f"<p>Hi {name},</p><p>Your application to <strong>{hackathon.title}</strong> has been accepted.</p>")
        if team and team.team_unique_id:
            body += f"<p>Your team ID is <strong>{team.team_unique_id}</strong>. Keep it handy for check-in.</p>"
    elif status == "waitlisted":
        subject = f"You're on the waitlist for {hackathon.title}"
        body = (f"<p>Hi {name},</p><p>You've been added to the waitlist for <strong>{hackathon.title}</strong>. "
                "We'll let you know if a spot opens up.</p>")
    else:
        subject = f"Update on your {hackathon.title} application"
        body = (f"<p>Hi {name},</p><p>Thank you for applying to <strong>{hackathon.title}</strong>. "
                "Unfortunately your application was not selected this time.</p>")
    status_code, _ = send_mail(user.email, subject, body)
    return status_code


def send_application_status_email(application_id: int, status: str):
    return _in_app_context(_application_status_mail, application_id, status)


def _team_request_mail(recipient_email, recipient_name, team_name, hackathon_title, approved):
    if approved:
        subject = f"Your request to join {team_name} was approved"
        body = (f"<p>Hi {recipient_name or 'there'},</p><p>You are now a member of <strong>{team_name}</strong> "
                f"for {hackathon_title}.</p>")
    else:
        subject = f"Your request to join {team_name} was declined"
        body = (f"<p>Hi {recipient_name or 'there'},</p><p>The leader of <strong>{team_name}</strong> "
                f"declined your request for {hackathon_title}. You can still join or create another team.</p>")
    status_code, _ = send_mail(recipient_email, subject, body)
    return status_code


def send_team_request_email(recipient_email: str, recipient_name: str, team_name: str, hackathon_title: str, approved: bool):
    return _in_app_context(_team_request_mail, recipient_email, recipient_name, team_name, hackathon_title, approved)


def accepted_participants(hackathon_id):
    """Users on teams whose application was accepted (deduplicated)."""
    team_ids = [a.team_id for a in Application.query.filter_by(hackathon_id=hackathon_id, status="accepted").all() if a.team_id]
    users = {}
    if team_ids:
        members = TeamMember.query.filter(TeamMember.team_id.in_(team_ids), TeamMember.accepted.is_(True)).all()
        ids = {m.user_id for m in members if m.user_id}
        for u in User.query.filter(User.id.in_(ids)).all():
            users[u.id] = u
    # solo applicants without a team
    for a in Application.query.filter_by(hackathon_id=hackathon_id, status="accepted", team_id=None).all():
        u = db.session.get(User, a.user_id)
        if u:
            users[u.id] = u
    return list(users.values())


def _gallery_open(hackathon_id):
    hackathon = db.session.get(Hackathon, hackathon_id)
    if not hackathon:
        return 0
    users = accepted_participants(hackathon_id)
    link = f"{current_app.config.get('APP_BASE_URL', '').rstrip('/')}/hackathons/{hackathon_id}/gallery"
    for u in users:
        notify(u.id, "hackathon", "Project Gallery is Open!",
               f"The project gallery for {hackathon.title} is now open! Submit your project to showcase your work.",
               hackathon_id=hackathon_id)
    db.session.commit()

    sent = 0
    for u in users:
        try:
            send_mail(u.email, f"The {hackathon.title} project gallery is open",
                      f"<p>Great news! The project gallery for <strong>{hackathon.title}</strong> is now open for submissions.</p>"
                      f"<p><a href=\"{link}\">Submit your project</a></p>")
            sent += 1
        except Exception:
            current_app.logger.exception('Gallery mail to %s failed', u.email)
    current_app.logger.info('Gallery open for hackathon=%s: notified %s users, mailed %s', hackathon_id, len(users), sent)
    return len(users)


def notify_gallery_open(hackathon_id: int):
    return _in_app_context(_gallery_open, hackathon_id)
