from ..extensions import db
from .base import HackathonScopedMixin, TimestampMixin


class Project(db.Model, HackathonScopedMixin, TimestampMixin):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="CASCADE"), index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    repo_url = db.Column(db.String(512))
    demo_url = db.Column(db.String(512))
    video_url = db.Column(db.String(512))
    tech_stack = db.Column(db.JSON)   # ["Python", "Flask"]
    screenshots = db.Column(db.JSON)  # storage urls
    submitted = db.Column(db.Boolean, nullable=False, default=False)
    winner_position = db.Column(db.Integer)

    votes = db.relationship("ProjectVote", backref="project", cascade="all, delete-orphan", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "hackathon_id": self.hackathon_id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "repo_url": self.repo_url,
            "demo_url": self.demo_url,
            "video_url": self.video_url,
            "tech_stack": self.tech_stack or [],
            "screenshots": self.screenshots or [],
            "submitted": bool(self.submitted),
            "winner_position": self.winner_position,
        }


class ProjectVote(db.Model, TimestampMixin):
    __tablename__ = "project_votes"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        db.UniqueConstraint('project_id', 'user_id', name='uq_project_votes_project_user'),
    )
