"""Initial schema

Creates every table from the current SQLAlchemy metadata: users, hackathons,
teams (members, invite codes, messages), applications, projects and votes,
judging (rubrics, judges, assignments, scores), notifications and
rate_limit_attempts.

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _metadata():
    from hackhub.extensions import db
    import hackhub.models  # noqa: F401
    return db.metadata


def upgrade() -> None:
    _metadata().create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    _metadata().drop_all(bind=op.get_bind(), checkfirst=True)
