from ..extensions import db


class RateLimitAttempt(db.Model):
    __tablename__ = "rate_limit_attempts"
    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(64), nullable=False)
    key = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)

    __table_args__ = (
        db.Index('ix_rate_limit_scope_key_created', 'scope', 'key', 'created_at'),
    )
