from hackhub.extensions import db
from hackhub.models.notification import Notification
from hackhub.models.team import Team, TeamMember


def _team_setup(make_user, make_hackathon, accepted_team, **hack_kw):
    org = make_user("org@hackhub.dev", role="organizer")
    alice = make_user("alice@hackhub.dev")
    carol = make_user("carol@hackhub.dev")
    h = make_hackathon(org, **hack_kw)
    team = accepted_team(h, alice, "Alpha")
    return h.id, team.id, alice.id, carol.id


def test_join_request_and_approval(make_user, make_hackathon, accepted_team, login):
    hid, team_id, alice_id, carol_id = _team_setup(make_user, make_hackathon, accepted_team)
    base = f"/hackathons/{hid}/teams/{team_id}"

    carol = login("carol@hackhub.dev")
    resp = carol.post(f"{base}/join")
    assert resp.status_code == 201
    member_id = resp.get_json()["member"]["id"]
    assert resp.get_json()["member"]["join_status"] == "pending"
    assert Notification.query.filter_by(user_id=alice_id, title="New Join Request").count() == 1

    # a pending request already counts as being in a team
    assert carol.post(f"{base}/join").status_code == 409

    # only the leader sees and answers requests
    assert carol.get(f"{base}/requests").status_code == 403
    alice = login("alice@hackhub.dev")
    pending = alice.get(f"{base}/requests").get_json()["items"]
    assert [p["id"] for p in pending] == [member_id]

    resp = alice.post(f"{base}/requests/{member_id}", json={"approved": True})
    assert resp.status_code == 200
    member = db.session.get(TeamMember, member_id)
    assert member.accepted is True and member.join_status == "accepted"
    assert Notification.query.filter_by(user_id=carol_id, title="Request Approved! 🎉").count() == 1

    team = carol.get(f"{base}").get_json()["team"]
    assert sorted(m["email"] for m in team["members"]) == ["alice@hackhub.dev", "carol@hackhub.dev"]


def test_rejected_request_is_deleted(make_user, make_hackathon, accepted_team, login):
    hid, team_id, alice_id, carol_id = _team_setup(make_user, make_hackathon, accepted_team)
    base = f"/hackathons/{hid}/teams/{team_id}"
    member_id = login("carol@hackhub.dev").post(f"{base}/join").get_json()["member"]["id"]

    alice = login("alice@hackhub.dev")
    resp = alice.post(f"{base}/requests/{member_id}", json={"approved": False})
    assert resp.status_code == 200
    assert resp.get_json()["member"]["join_status"] == "rejected"
    assert db.session.get(TeamMember, member_id) is None
    assert Notification.query.filter_by(user_id=carol_id, title="Request Declined").count() == 1
    assert alice.post(f"{base}/requests/{member_id}", json={"approved": True}).status_code == 404


def test_full_team_refuses_requests(make_user, make_hackathon, accepted_team, login):
    hid, team_id, _, _ = _team_setup(make_user, make_hackathon, accepted_team, max_team_size=1)
    resp = login("carol@hackhub.dev").post(f"/hackathons/{hid}/teams/{team_id}/join")
    assert resp.status_code == 409
    assert "full" in resp.get_json()["error"]


def test_remove_member_and_transfer_leadership(make_user, make_hackathon, accepted_team, login):
    hid, team_id, alice_id, carol_id = _team_setup(make_user, make_hackathon, accepted_team)
    base = f"/hackathons/{hid}/teams/{team_id}"
    member_id = login("carol@hackhub.dev").post(f"{base}/join").get_json()["member"]["id"]
    alice = login("alice@hackhub.dev")
    alice.post(f"{base}/requests/{member_id}", json={"approved": True})

    leader_row = TeamMember.query.filter_by(team_id=team_id, user_id=alice_id).one()
    assert alice.delete(f"{base}/members/{leader_row.id}").status_code == 400

    resp = alice.post(f"{base}/leader", json={"member_id": member_id})
    assert resp.status_code == 200
    assert db.session.get(Team, team_id).created_by == carol_id
    assert db.session.get(TeamMember, leader_row.id).role == "member"

    # alice is no longer the leader
    assert alice.delete(f"{base}/members/{member_id}").status_code == 403
    carol = login("carol@hackhub.dev")
    resp = carol.delete(f"{base}/members/{leader_row.id}")
    assert resp.status_code == 200
    assert db.session.get(TeamMember, leader_row.id) is None
    assert Notification.query.filter_by(user_id=alice_id, title="Removed from Team").count() == 1


def test_team_chat_is_members_only(make_user, make_hackathon, accepted_team, login):
    hid, team_id, _, _ = _team_setup(make_user, make_hackathon, accepted_team)
    base = f"/hackathons/{hid}/teams/{team_id}/messages"
    alice = login("alice@hackhub.dev")
    assert alice.post(base, json={"message": "  "}).status_code == 400
    assert alice.post(base, json={"message": "hello team"}).status_code == 201
    assert alice.post(base, json={"message": "second"}).status_code == 201
    items = alice.get(base).get_json()["items"]
    assert [m["message"] for m in items] == ["hello team", "second"]

    carol = login("carol@hackhub.dev")
    assert carol.get(base).status_code == 403
    assert carol.post(base, json={"message": "let me in"}).status_code == 403
    # organizers can read along
    assert login("org@hackhub.dev").get(base).status_code == 200


def test_my_team(make_user, make_hackathon, accepted_team, login):
    hid, team_id, _, _ = _team_setup(make_user, make_hackathon, accepted_team)
    assert login("alice@hackhub.dev").get(f"/hackathons/{hid}/teams/mine").get_json()["team"]["id"] == team_id
    assert login("carol@hackhub.dev").get(f"/hackathons/{hid}/teams/mine").get_json()["team"] is None
