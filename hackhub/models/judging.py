from ..extensions import db
from .base import HackathonScopedMixin, TimestampMixin


class JudgingRubric(db.Model, HackathonScopedMixin, TimestampMixin):
    __tablename__ = "judging_rubrics"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    max_score = db.Column(db.Integer, nullable=False, default=10)
    weight = db.Column(db.Numeric(6, 2), nullable=False, default=1)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "hackathon_id": self.hackathon_id,
            "name": self.name,
            "description": self.description,
            "max_score": self.max_score,
            "weight": float(self.weight) if self.weight is not None else None,
            "sort_order": self.sort_order,
        }


class Judge(db.Model, HackathonScopedMixin, TimestampMixin):
    __tablename__ = "judges"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    email = db.Column(db.String(255), nullable=False)
    added_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    assignments = db.relationship("JudgeAssignment", backref="judge", cascade="all, delete-orphan", lazy="dynamic")
    scores = db.relationship("JudgeScore", backref="judge", cascade="all, delete-orphan", lazy="dynamic")

    __table_args__ = (
        db.UniqueConstraint('hackathon_id', 'email', name='uq_judges_hackathon_email'),
    )

    def to_dict(self):
        return {"id": self.id, "hackathon_id": self.hackathon_id, "email": self.email, "user_id": self.user_id}


class JudgeAssignment(db.Model, HackathonScopedMixin, TimestampMixin):
    __tablename__ = "judge_team_assignments"

    id = db.Column(db.Integer, primary_key=True)
    judge_id = db.Column(db.Integer, db.ForeignKey("judges.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        db.UniqueConstraint('judge_id', 'team_id', name='uq_assignments_judge_team'),
    )

    def to_dict(self):
        return {"id": self.id, "judge_id": self.judge_id, "team_id": self.team_id, "hackathon_id": self.hackathon_id}


class JudgeScore(db.Model, HackathonScopedMixin, TimestampMixin):
    __tablename__ = "judge_scores"

    id = db.Column(db.Integer, primary_key=True)
    judge_id = db.Column(db.Integer, db.ForeignKey("judges.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    rubric_id = db.Column(db.Integer, db.ForeignKey("judging_rubrics.id", ondelete="CASCADE"), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    submitted = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.DateTime)

    __table_args__ = (
        db.UniqueConstraint('judge_id', 'team_id', 'rubric_id', name='uq_scores_judge_team_rubric'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "judge_id": self.judge_id,
            "team_id": self.team_id,
            "rubric_id": self.rubric_id,
            "score": self.score,
            "submitted": bool(self.submitted),
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
