from ..extensions import db

class HackathonScopedMixin:
    hackathon_id = db.Column(db.Integer, db.ForeignKey("hackathons.id", ondelete="CASCADE"), nullable=False, index=True)

class TimestampMixin:
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())
