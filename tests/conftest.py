import os
import sys
from datetime import datetime, timedelta

import pytest
from flask import g

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from hackhub import create_app
from hackhub.extensions import db
from hackhub.models.application import Application
from hackhub.models.hackathon import Hackathon
from hackhub.models.team import Team, TeamMember
from hackhub.models.user import User

PASSWORD = "password123"


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "RQ_EAGER": True,
        "SENDGRID_API_KEY": None,
        "STORAGE_BACKEND": "local",
        "LOCAL_STORAGE_DIR": str(tmp_path / "storage"),
    })

    # The fixture holds one app context open for the whole test, so every
    # request shares its ``g``; drop Flask-Login's cached user so each test
    # client is resolved from its own session cookie.
    @app.before_request
    def _reset_login_user():
        g.pop("_login_user", None)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(email, role="user", full_name=None):
        user = User(email=email, role=role, full_name=full_name or email.split("@")[0].title())
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def login(app):
    """Returns a test client logged in as ``email``."""
    def _login(email):
        c = app.test_client()
        resp = c.post("/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return c
    return _login


@pytest.fixture
def make_hackathon(app):
    def _make(organizer, **kw):
        values = dict(title="Spring Hack", status="live", max_team_size=4,
                      application_deadline=datetime.utcnow() + timedelta(days=7))
        values.update(kw)
        h = Hackathon(created_by=organizer.id, **values)
        db.session.add(h)
        db.session.commit()
        return h
    return _make


@pytest.fixture
def accepted_team(app):
    def _make(hackathon, leader, name):
        team = Team(hackathon_id=hackathon.id, team_name=name, created_by=leader.id)
        db.session.add(team)
        db.session.flush()
        db.session.add(TeamMember(team_id=team.id, user_id=leader.id, email=leader.email,
                                  role="leader", accepted=True, join_status="accepted"))
        db.session.add(Application(hackathon_id=hackathon.id, team_id=team.id, user_id=leader.id,
                                   status="accepted", submitted_at=datetime.utcnow()))
        db.session.commit()
        return team
    return _make
