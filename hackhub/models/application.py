from ..extensions import db
from .base import HackathonScopedMixin, TimestampMixin

APPLICATION_STATUSES = ("draft", "submitted", "accepted", "rejected", "waitlisted")
DECISION_STATUSES = ("accepted", "rejected", "waitlisted")


class Application(db.Model, HackathonScopedMixin, TimestampMixin):
    __tablename__ = "applications"
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="SET NULL"))
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    status = db.Column(db.String(20), default="draft", index=True)
    application_data = db.Column(db.JSON)  # {"project_idea": ..., "why_join": ..., "domain": ...}
    abstract = db.Column(db.Text)
    presentation_url = db.Column(db.String(512))
    submitted_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            "id": self.id,
            "hackathon_id": self.hackathon_id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "status": self.status,
            "application_data": self.application_data or {},
            "abstract": self.abstract,
            "presentation_url": self.presentation_url,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
