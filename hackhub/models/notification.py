from ..extensions import db
from .base import TimestampMixin

NOTIFICATION_TYPES = ("application", "team_invite", "hackathon", "admin")


class Notification(db.Model, TimestampMixin):
    __tablename__ = "notifications"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(255))
    message = db.Column(db.Text, nullable=False)
    # "metadata" is reserved on declarative models
    extra = db.Column("metadata", db.JSON)
    read = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "metadata": self.extra or {},
            "read": bool(self.read),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
