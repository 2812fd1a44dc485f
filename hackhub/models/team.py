from ..extensions import db
from .base import HackathonScopedMixin, TimestampMixin


class Team(db.Model, HackathonScopedMixin, TimestampMixin):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)
    # HackathonScopedMixin: hackathon_id
    team_name = db.Column(db.String(120), nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"))  # current leader
    # assigned when the team's application is accepted
    team_unique_id = db.Column(db.String(8), unique=True, index=True)

    members = db.relationship("TeamMember", backref="team", cascade="all, delete-orphan", lazy="dynamic")

    def active_member_count(self):
        """Members that occupy a seat: accepted, or waiting on the leader."""
        return self.members.filter(
            db.or_(TeamMember.accepted.is_(True), TeamMember.join_status == "pending")
        ).count()

    def to_dict(self):
        return {
            "id": self.id,
            "hackathon_id": self.hackathon_id,
            "team_name": self.team_name,
            "created_by": self.created_by,
            "team_unique_id": self.team_unique_id,
        }

    def __repr__(self) -> str:
        return f"<Team id={self.id} name={self.team_name!r}>"


class TeamMember(db.Model, TimestampMixin):
    __tablename__ = "team_members"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))  # null for e-mail only invites
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default="member")            # leader/member
    accepted = db.Column(db.Boolean, default=False)
    join_status = db.Column(db.String(20), default="accepted")   # pending/accepted/rejected

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role,
            "accepted": bool(self.accepted),
            "join_status": self.join_status,
        }


class TeamInviteCode(db.Model, HackathonScopedMixin, TimestampMixin):
    __tablename__ = "team_invite_codes"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    code = db.Column(db.String(8), nullable=False, unique=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active")  # active/used/expired
    expires_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "code": self.code,
            "status": self.status,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


class TeamMessage(db.Model, TimestampMixin):
    __tablename__ = "team_messages"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    message = db.Column(db.Text, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "message": self.message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
