from ..extensions import db
from .base import TimestampMixin

HACKATHON_STATUSES = ("draft", "live", "ended")
HACKATHON_MODES = ("online", "offline", "hybrid")


class Hackathon(db.Model, TimestampMixin):
    __tablename__ = "hackathons"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    tagline = db.Column(db.String(255))
    description = db.Column(db.Text)
    rules = db.Column(db.Text)
    location = db.Column(db.String(200))
    mode = db.Column(db.String(20), default="online")      # online/offline/hybrid
    status = db.Column(db.String(20), default="draft", index=True)  # draft/live/ended
    start_date = db.Column(db.DateTime)
    end_date = db.Column(db.DateTime)
    application_deadline = db.Column(db.DateTime)
    min_team_size = db.Column(db.Integer, default=1)
    max_team_size = db.Column(db.Integer, default=4)
    banner_url = db.Column(db.String(512))
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"))

    # phase switches
    judging_open = db.Column(db.Boolean, nullable=False, default=False)
    gallery_open = db.Column(db.Boolean, nullable=False, default=False)

    def is_organizer(self, user):
        if not getattr(user, "is_authenticated", False):
            return False
        return user.role == "admin" or user.id == self.created_by

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "tagline": self.tagline,
            "description": self.description,
            "rules": self.rules,
            "location": self.location,
            "mode": self.mode,
            "status": self.status,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "application_deadline": self.application_deadline.isoformat() if self.application_deadline else None,
            "min_team_size": self.min_team_size,
            "max_team_size": self.max_team_size,
            "banner_url": self.banner_url,
            "created_by": self.created_by,
            "judging_open": self.judging_open,
            "gallery_open": self.gallery_open,
        }

    def __repr__(self) -> str:
        return f"<Hackathon id={self.id} title={self.title!r}>"
