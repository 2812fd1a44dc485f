from datetime import datetime, timedelta

import pytest

from hackhub.extensions import db
from hackhub.models.application import Application
from hackhub.models.notification import Notification
from hackhub.models.team import Team, TeamMember
from hackhub.services import applications as app_service


def test_submit_creates_team_members_and_application(make_user, make_hackathon, login):
    org = make_user("org@hackhub.dev", role="organizer")
    alice = make_user("alice@hackhub.dev")
    h = make_hackathon(org)
    hid, org_id, alice_id = h.id, org.id, alice.id

    c = login("alice@hackhub.dev")
    resp = c.post(f"/hackathons/{hid}/applications", json={
        "team_name": "Alpha",
        "project_idea": "Offline maps",
        "team_members": ["Bob@hackhub.dev", "carol@hackhub.dev", "bob@hackhub.dev", "alice@hackhub.dev"],
    })
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()["application"]
    assert body["status"] == "submitted"
    assert body["application_data"]["project_idea"] == "Offline maps"

    team = db.session.get(Team, body["team_id"])
    members = team.members.order_by(TeamMember.id.asc()).all()
    assert [(m.email, m.role, m.join_status) for m in members] == [
        ("alice@hackhub.dev", "leader", "accepted"),
        ("bob@hackhub.dev", "member", "pending"),
        ("carol@hackhub.dev", "member", "pending"),
    ]
    assert team.created_by == alice_id
    assert Notification.query.filter_by(user_id=org_id, type="application").count() == 1

    resp = c.get(f"/hackathons/{hid}/applications/mine")
    assert resp.get_json()["application"]["team"]["team_name"] == "Alpha"

    resp = c.post(f"/hackathons/{hid}/applications", json={"team_name": "Again"})
    assert resp.status_code == 409


def test_submit_rejects_oversized_team_without_writing(make_user, make_hackathon, login):
    org = make_user("org@hackhub.dev", role="organizer")
    make_user("alice@hackhub.dev")
    h = make_hackathon(org, max_team_size=2)
    c = login("alice@hackhub.dev")
    resp = c.post(f"/hackathons/{h.id}/applications",
                  json={"team_name": "Alpha", "team_members": ["b@hackhub.dev", "c@hackhub.dev"]})
    assert resp.status_code == 400
    assert Team.query.count() == 0
    assert Application.query.count() == 0


def test_submit_validation_errors(make_user, make_hackathon, login):
    org = make_user("org@hackhub.dev", role="organizer")
    make_user("alice@hackhub.dev")
    h = make_hackathon(org)
    c = login("alice@hackhub.dev")
    resp = c.post(f"/hackathons/{h.id}/applications", json={"team_members": []})
    assert resp.status_code == 400
    assert "team_name" in resp.get_json()["fields"]
    resp = c.post(f"/hackathons/{h.id}/applications",
                  json={"team_name": "Alpha", "team_members": ["not-an-email"]})
    assert resp.status_code == 400


def test_closed_or_past_deadline(app, make_user, make_hackathon):
    org = make_user("org@hackhub.dev", role="organizer")
    alice = make_user("alice@hackhub.dev")
    from hackhub.errors import ValidationError
    draft = make_hackathon(org, status="draft")
    with pytest.raises(ValidationError):
        app_service.submit_application(draft, alice, "Alpha")
    late = make_hackathon(org, application_deadline=datetime.utcnow() - timedelta(hours=1))
    with pytest.raises(ValidationError):
        app_service.submit_application(late, alice, "Alpha")


def test_failed_step_rolls_back_every_write(app, make_user, make_hackathon, monkeypatch):
    org = make_user("org@hackhub.dev", role="organizer")
    alice = make_user("alice@hackhub.dev")
    h = make_hackathon(org)

    def boom(*args, **kwargs):
        raise RuntimeError("notification store down")
    monkeypatch.setattr(app_service, "notify", boom)

    with pytest.raises(RuntimeError):
        app_service.submit_application(h, alice, "Alpha", member_emails=["bob@hackhub.dev"])
    assert Team.query.count() == 0
    assert TeamMember.query.count() == 0
    assert Application.query.count() == 0


def test_accept_assigns_team_id_and_notifies(make_user, make_hackathon, login):
    org = make_user("org@hackhub.dev", role="organizer")
    alice = make_user("alice@hackhub.dev")
    h = make_hackathon(org)
    hid, alice_id = h.id, alice.id
    app_row = app_service.submit_application(h, alice, "Alpha")
    app_id, team_id = app_row.id, app_row.team_id

    # applicants cannot decide on their own application
    resp = login("alice@hackhub.dev").post(f"/hackathons/{hid}/applications/{app_id}/decision",
                                           json={"status": "accepted"})
    assert resp.status_code == 403

    oc = login("org@hackhub.dev")
    resp = oc.post(f"/hackathons/{hid}/applications/{app_id}/decision", json={"status": "maybe"})
    assert resp.status_code == 400

    resp = oc.post(f"/hackathons/{hid}/applications/{app_id}/decision", json={"status": "accepted"})
    assert resp.status_code == 200
    body = resp.get_json()["application"]
    assert body["status"] == "accepted"
    uid = db.session.get(Team, team_id).team_unique_id
    assert uid and len(uid) == 8 and uid.isalnum() and uid.upper() == uid
    assert body["team"]["team_unique_id"] == uid

    n = Notification.query.filter_by(user_id=alice_id, type="application").one()
    assert n.title == "Application Accepted! 🎉"
    assert uid in n.message
    assert n.extra["status"] == "accepted"

    resp = oc.get(f"/hackathons/{hid}/applications?status=accepted")
    assert [a["id"] for a in resp.get_json()["items"]] == [app_id]


def test_waitlist_keeps_team_id_empty(app, make_user, make_hackathon):
    org = make_user("org@hackhub.dev", role="organizer")
    alice = make_user("alice@hackhub.dev")
    h = make_hackathon(org)
    app_row = app_service.submit_application(h, alice, "Alpha")
    app_service.decide_application(app_row, "waitlisted")
    assert db.session.get(Team, app_row.team_id).team_unique_id is None
    n = Notification.query.filter_by(user_id=alice.id).one()
    assert n.title == "You're on the Waitlist 📋"


def test_presentation_upload(make_user, make_hackathon, login):
    import io
    org = make_user("org@hackhub.dev", role="organizer")
    alice = make_user("alice@hackhub.dev")
    h = make_hackathon(org)
    app_row = app_service.submit_application(h, alice, "Alpha")
    url = f"/hackathons/{h.id}/applications/{app_row.id}/presentation"

    c = login("alice@hackhub.dev")
    resp = c.post(url, data={"file": (io.BytesIO(b"%PDF-1.4"), "deck.pdf")}, content_type="multipart/form-data")
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()["application"]["presentation_url"].endswith("deck.pdf")

    resp = c.post(url, data={"file": (io.BytesIO(b"MZ"), "deck.exe")}, content_type="multipart/form-data")
    assert resp.status_code == 400
