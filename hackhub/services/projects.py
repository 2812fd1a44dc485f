from flask import current_app

from ..errors import NotFound, PermissionDenied, ValidationError
from ..extensions import db
from ..models.project import Project, ProjectVote
from .teams import membership_in_hackathon

PROJECT_FIELDS = ("title", "description", "repo_url", "demo_url", "video_url", "tech_stack")
MAX_SCREENSHOTS = 6


def get_project_or_404(hackathon_id, project_id):
    project = db.session.get(Project, project_id)
    if not project or project.hackathon_id != hackathon_id:
        raise NotFound("Project not found")
    return project


def team_project(team_id):
    return Project.query.filter_by(team_id=team_id).first()


def save_project(hackathon, user, fields, submit=False):
    """Create or update the project of the user's team for this event."""
    if not hackathon.gallery_open:
        raise ValidationError("The project gallery is not open yet")
    member = membership_in_hackathon(user.id, hackathon.id)
    if not member or not member.accepted:
        raise PermissionDenied("Join a team before submitting a project")

    project = team_project(member.team_id)
    if project is None:
        if not (fields.get("title") or "").strip():
            raise ValidationError("title is required")
        project = Project(hackathon_id=hackathon.id, team_id=member.team_id, user_id=user.id)
        db.session.add(project)
    for key in PROJECT_FIELDS:
        if key in fields:
            setattr(project, key, fields[key])
    if submit:
        project.submitted = True
    db.session.commit()
    current_app.logger.info('Project %s saved team=%s submitted=%s', project.id, project.team_id, project.submitted)
    return project


def require_project_member(project, user):
    member = membership_in_hackathon(user.id, project.hackathon_id)
    if not member or member.team_id != project.team_id or not member.accepted:
        raise PermissionDenied("Only team members can edit this project")


def add_screenshot(project, url):
    shots = list(project.screenshots or [])
    if len(shots) >= MAX_SCREENSHOTS:
        raise ValidationError(f"A project can have at most {MAX_SCREENSHOTS} screenshots")
    shots.append(url)
    # reassign so the JSON column is marked dirty
    project.screenshots = shots
    db.session.commit()
    return project


def gallery(hackathon_id, user=None):
    """Submitted projects with vote counts, winners first then most voted."""
    projects = Project.query.filter_by(hackathon_id=hackathon_id, submitted=True).all()
    counts = dict(db.session.query(ProjectVote.project_id, db.func.count(ProjectVote.id))
                  .filter(ProjectVote.project_id.in_([p.id for p in projects] or [0]))
                  .group_by(ProjectVote.project_id).all())
    mine = set()
    if user is not None and getattr(user, "is_authenticated", False):
        mine = {v.project_id for v in ProjectVote.query.filter_by(user_id=user.id).all()}
    items = []
    for p in projects:
        items.append(dict(p.to_dict(), votes=counts.get(p.id, 0), voted=p.id in mine))
    items.sort(key=lambda r: (r["winner_position"] is None, r["winner_position"] or 0, -r["votes"], r["id"]))
    return items


def toggle_vote(project, user):
    """Vote for a project, or take the vote back. Returns (voted, count)."""
    if not project.submitted:
        raise ValidationError("Only submitted projects can be voted on")
    vote = ProjectVote.query.filter_by(project_id=project.id, user_id=user.id).first()
    if vote:
        db.session.delete(vote)
        voted = False
    else:
        db.session.add(ProjectVote(project_id=project.id, user_id=user.id))
        voted = True
    db.session.commit()
    return voted, project.votes.count()
