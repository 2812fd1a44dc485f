import json

from hackhub.extensions import db
from hackhub.models.judging import JudgingRubric
from hackhub.services import scoring
from hackhub.services.cache import ChangeFeed, QueryCache, RedisBridge, cache


def test_read_through_and_filtered_invalidation(app):
    feed = ChangeFeed()
    qc = QueryCache(feed)
    calls = []

    def loader():
        calls.append(1)
        return len(calls)

    assert qc.get_or_load(("rubrics", 1), loader, tables=("judging_rubrics",), where={"hackathon_id": 1}) == 1
    assert qc.get_or_load(("rubrics", 1), loader, tables=("judging_rubrics",), where={"hackathon_id": 1}) == 1
    assert (qc.hits, qc.misses) == (1, 1)

    feed.publish("judging_rubrics", "INSERT", {"id": 5, "hackathon_id": 2})
    feed.publish("judge_scores", "INSERT", {"id": 5, "hackathon_id": 1})
    assert ("rubrics", 1) in qc

    feed.publish("judging_rubrics", "UPDATE", {"id": 5, "hackathon_id": 1})
    assert ("rubrics", 1) not in qc
    assert qc.get_or_load(("rubrics", 1), loader, tables=("judging_rubrics",), where={"hackathon_id": 1}) == 2


def test_failing_listener_does_not_stop_others(app):
    feed = ChangeFeed()
    seen = []

    def broken(table, op, values):
        raise RuntimeError("boom")

    feed.subscribe("teams", broken)
    feed.subscribe("teams", lambda t, op, v: seen.append(op))
    feed.publish("teams", "DELETE", {"id": 1})
    assert seen == ["DELETE"]


def test_commits_invalidate_cached_queries(app, make_user, make_hackathon):
    org = make_user("org@hackhub.dev", role="organizer")
    h = make_hackathon(org)
    other = make_hackathon(org, title="Other")
    scoring.add_rubric(h, "Impact")

    assert [r.name for r in scoring.event_rubrics(h.id)] == ["Impact"]
    assert [r.name for r in scoring.event_rubrics(other.id)] == []

    scoring.add_rubric(h, "Execution", weight=2)
    assert ("judging-rubrics", h.id) not in cache
    # another event's cached read is untouched
    assert ("judging-rubrics", other.id) in cache
    assert [r.name for r in scoring.event_rubrics(h.id)] == ["Impact", "Execution"]


def test_rolled_back_changes_are_not_published(app, make_user, make_hackathon):
    org = make_user("org@hackhub.dev", role="organizer")
    h = make_hackathon(org)
    scoring.event_rubrics(h.id)
    db.session.add(JudgingRubric(hackathon_id=h.id, name="Draft", max_score=10, weight=1))
    db.session.flush()
    db.session.rollback()
    assert ("judging-rubrics", h.id) in cache
    assert scoring.event_rubrics(h.id) == []


class FakeRedis:
    def __init__(self):
        self.published = []

    def publish(self, channel, payload):
        self.published.append((channel, payload))


def test_redis_bridge_relays_between_processes(app):
    feed = ChangeFeed()
    seen = []
    feed.subscribe("judge_scores", lambda t, op, v: seen.append((op, v)))

    local = RedisBridge(app, feed, FakeRedis())
    feed.add_forwarder(local.forward)
    feed.publish("judge_scores", "UPDATE", {"id": 3, "hackathon_id": 1})
    ((channel, payload),) = local.redis.published
    assert channel == RedisBridge.channel
    assert json.loads(payload)["values"] == {"id": 3, "hackathon_id": 1}

    # a peer's message reaches local listeners but is not forwarded back
    local._on_message({"data": json.dumps({"origin": "peer", "table": "judge_scores", "op": "DELETE",
                                           "values": {"id": 4, "hackathon_id": 1}})})
    assert seen[-1] == ("DELETE", {"id": 4, "hackathon_id": 1})
    assert len(local.redis.published) == 1

    # our own messages echoed back by redis are ignored
    local._on_message({"data": payload})
    assert len(seen) == 2


def test_change_committed_during_load_is_not_cached_over(app, make_user, make_hackathon):
    org = make_user("org@hackhub.dev", role="organizer")
    h = make_hackathon(org)
    hid = h.id
    scoring.add_rubric(h, "Impact")
    key = ("judging-rubrics", hid)

    def racing_loader():
        rows = JudgingRubric.query.filter_by(hackathon_id=hid).all()
        # another request commits after our read but before we store it
        db.session.add(JudgingRubric(hackathon_id=hid, name="Execution", max_score=10, weight=2))
        db.session.commit()
        return [r.name for r in rows]

    assert cache.get_or_load(key, racing_loader, tables=("judging_rubrics",), where={"hackathon_id": hid}) == ["Impact"]
    assert key not in cache
    assert [r.name for r in scoring.event_rubrics(hid)] == ["Impact", "Execution"]


def test_invalidate_during_load_discards_result(app):
    qc = QueryCache(ChangeFeed())

    def loader():
        qc.invalidate("k")
        return "stale"

    assert qc.get_or_load("k", loader, tables=("teams",)) == "stale"
    assert "k" not in qc
    assert qc.get_or_load("k", lambda: "fresh", tables=("teams",)) == "fresh"
    assert "k" in qc


def test_entries_expire_after_ttl(app):
    now = [100.0]
    qc = QueryCache(ChangeFeed(), ttl=30, clock=lambda: now[0])
    calls = []

    def loader():
        calls.append(1)
        return len(calls)

    assert qc.get_or_load("k", loader, tables=("judge_scores",)) == 1
    now[0] += 29
    assert qc.get_or_load("k", loader, tables=("judge_scores",)) == 1
    now[0] += 2
    assert "k" not in qc
    assert qc.get_or_load("k", loader, tables=("judge_scores",)) == 2


def test_app_config_sets_cache_ttl(app):
    assert cache.ttl == (app.config["CACHE_TTL_SEC"] or None)
