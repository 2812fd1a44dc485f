from datetime import datetime

from flask import current_app

from ..errors import Conflict, NotFound, ValidationError
from ..extensions import db
from ..models.application import Application, DECISION_STATUSES
from ..models.hackathon import Hackathon
from ..models.team import Team, TeamMember
from .notifications import notify, queue_email
from .teams import assign_team_unique_id, membership_in_hackathon


def get_hackathon_or_404(hackathon_id):
    hackathon = db.session.get(Hackathon, hackathon_id)
    if not hackathon:
        raise NotFound("Hackathon not found")
    return hackathon


def existing_application(user_id, hackathon_id):
    return Application.query.filter_by(user_id=user_id, hackathon_id=hackathon_id).first()


def submit_application(hackathon, user, team_name, member_emails=(), project_idea=None,
                       why_join=None, domain=None, abstract=None, presentation_url=None, now=None):
    """Create the team, its leader, e-mail invites and the application together.

    All rows are flushed in one transaction; if any step fails nothing is
    kept.
    """
    now = now or datetime.utcnow()
    if hackathon.status != "live":
        raise ValidationError("Applications are not open for this hackathon")
    if hackathon.application_deadline and hackathon.application_deadline < now:
        raise ValidationError("The application deadline has passed")
    if existing_application(user.id, hackathon.id):
        raise Conflict("You have already applied to this hackathon")
    if membership_in_hackathon(user.id, hackathon.id):
        raise Conflict("You are already in a team for this hackathon")

    emails = []
    for e in member_emails or ():
        e = (e or "").strip().lower()
        if e and e != user.email.lower() and e not in emails:
            emails.append(e)
    max_additional = (hackathon.max_team_size or 4) - 1
    if len(emails) > max_additional:
        raise ValidationError(f"A team can have at most {max_additional} additional members")

    try:
        team = Team(hackathon_id=hackathon.id, team_name=team_name, created_by=user.id)
        db.session.add(team)
        db.session.flush()

        db.session.add(TeamMember(team_id=team.id, user_id=user.id, email=user.email,
                                  role="leader", accepted=True, join_status="accepted"))
        for e in emails:
            db.session.add(TeamMember(team_id=team.id, email=e, role="member",
                                      accepted=False, join_status="pending"))

        app_row = Application(
            hackathon_id=hackathon.id,
            team_id=team.id,
            user_id=user.id,
            status="submitted",
            submitted_at=now,
            application_data={"project_idea": project_idea, "why_join": why_join, "domain": domain},
            abstract=abstract,
            presentation_url=presentation_url,
        )
        db.session.add(app_row)
        db.session.flush()

        if hackathon.created_by:
            notify(hackathon.created_by, "application", "New Application",
                   f'Team "{team_name}" applied to {hackathon.title}',
                   hackathon_id=hackathon.id, application_id=app_row.id,
                   has_presentation=bool(presentation_url))
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Application submission rolled back hackathon=%s user=%s', hackathon.id, user.id)
        raise
    current_app.logger.info('Application %s submitted team=%s hackathon=%s', app_row.id, team.id, hackathon.id)
    return app_row


def decide_application(app_row, status):
    """Organizer decision. Accepting assigns the team's unique ID."""
    from ..jobs.notify import send_application_status_email

    if status not in DECISION_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(DECISION_STATUSES)}")
    hackathon = db.session.get(Hackathon, app_row.hackathon_id)
    team = db.session.get(Team, app_row.team_id) if app_row.team_id else None

    app_row.status = status
    team_uid = None
    if status == "accepted" and team:
        team_uid = assign_team_unique_id(team)

    title = hackathon.title if hackathon else "the hackathon"
    if status == "accepted":
        n_title = "Application Accepted! 🎉"
        message = f"Your application to {title} has been accepted!"
        if team_uid:
            message += f" Team ID: {team_uid}"
    elif status == "waitlisted":
        n_title = "You're on the Waitlist 📋"
        message = f"You've been added to the waitlist for {title}. We'll notify you if a spot opens up."
    else:
        n_title = "Application Update"
        message = f"Your application to {title} was not selected."
    notify(app_row.user_id, "application", n_title, message,
           hackathon_id=app_row.hackathon_id, application_id=app_row.id, status=status,
           team_unique_id=team_uid)
    db.session.commit()

    queue_email(send_application_status_email, app_row.id, status)
    return app_row
