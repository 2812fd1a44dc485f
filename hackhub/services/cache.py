"""Read-through query cache with change-feed invalidation.

Cached reads are keyed by query identity, e.g. ``("judge-scores", 3)``.
Every key is registered under the table it reads from and an optional
column filter. After a session commits, the rows that were inserted,
updated or deleted are published to the change feed, and each subscribed
key whose filter matches the changed row is dropped.
"""
import json
import threading
import time
import uuid
from collections import defaultdict

from flask import current_app
from sqlalchemy import event, inspect as sa_inspect


class ChangeFeed:
    """Publishes (table, event, row values) after commit to registered listeners."""

    def __init__(self):
        self._listeners = defaultdict(list)
        self._lock = threading.Lock()
        self._installed = False
        self._forwarders = []

    def subscribe(self, table, callback):
        with self._lock:
            self._listeners[table].append(callback)

    def unsubscribe(self, table, callback):
        with self._lock:
            if callback in self._listeners.get(table, []):
                self._listeners[table].remove(callback)

    def add_forwarder(self, callback):
        """Called for locally committed changes only (not for ones received from peers)."""
        with self._lock:
            self._forwarders.append(callback)

    def publish(self, table, op, values, local=True):
        with self._lock:
            listeners = list(self._listeners.get(table, []))
            if local:
                listeners += self._forwarders
        for cb in listeners:
            try:
                cb(table, op, values)
            except Exception:
                current_app.logger.exception('Change listener failed for %s %s', op, table)

    def install(self, session_cls):
        """Hook a SQLAlchemy session class so committed changes are published."""
        if self._installed:
            return
        self._installed = True

        @event.listens_for(session_cls, "after_flush")
        def _collect(session, flush_context):
            pending = session.info.setdefault("hackhub_changes", [])
            for op, objs in (("INSERT", session.new), ("UPDATE", session.dirty), ("DELETE", session.deleted)):
                for obj in objs:
                    table = getattr(obj, "__tablename__", None)
                    if not table:
                        continue
                    if op == "UPDATE" and not session.is_modified(obj):
                        continue
                    pending.append((table, op, _row_values(obj)))

        @event.listens_for(session_cls, "after_commit")
        def _publish(session):
            pending = session.info.pop("hackhub_changes", [])
            for table, op, values in pending:
                self.publish(table, op, values)

        @event.listens_for(session_cls, "after_rollback")
        def _discard(session):
            session.info.pop("hackhub_changes", None)


def _row_values(obj):
    state = sa_inspect(obj)
    # expired attributes are left out; listeners treat a missing column as a match
    return {a.key: state.dict[a.key] for a in state.mapper.column_attrs if a.key in state.dict}


class QueryCache:
    """Read-through cache of query results.

    Each key carries a generation that every invalidation bumps. A load only
    stores its result if the generation it started under is still current,
    so a change committed while the loader runs is never cached over.
    Entries also expire after ``ttl`` seconds when one is set; that bounds
    staleness for changes made by processes this one does not hear about.
    """

    def __init__(self, feed=None, ttl=None, clock=time.monotonic):
        self._data = {}  # key -> (value, expires_at or None)
        self._gen = defaultdict(int)
        self._topics = defaultdict(dict)  # table -> {key: filter dict}
        self._lock = threading.Lock()
        self._feed = None
        self.ttl = ttl
        self.clock = clock
        self.hits = 0
        self.misses = 0
        if feed is not None:
            self.attach(feed)

    def attach(self, feed):
        self._feed = feed

    def get_or_load(self, key, loader, tables, where=None):
        """Return the cached value for ``key`` or call ``loader`` and cache it.

        ``tables`` lists the tables the loader reads from; ``where`` is a
        mapping of column -> value that a changed row must match for the
        key to be invalidated (``None`` invalidates on any change).
        """
        with self._lock:
            entry = self._data.get(key)
            if entry is not None:
                value, expires_at = entry
                if expires_at is None or self.clock() < expires_at:
                    self.hits += 1
                    return value
                del self._data[key]
            self.misses += 1
            # subscribe before loading; a change committed mid-load bumps the generation
            for t in tables:
                if not self._topics[t] and self._feed is not None:
                    self._feed.subscribe(t, self._on_change)
                self._topics[t][key] = dict(where or {})
            gen = self._gen[key]
        value = loader()
        with self._lock:
            if self._gen[key] == gen:
                expires_at = self.clock() + self.ttl if self.ttl else None
                self._data[key] = (value, expires_at)
            else:
                current_app.logger.debug('Cache load for key=%s raced a change; not stored', key)
        return value

    def _drop(self, key):
        self._data.pop(key, None)
        self._gen[key] += 1

    def invalidate(self, key):
        with self._lock:
            self._drop(key)

    def clear(self):
        with self._lock:
            for key in list(self._gen) + list(self._data):
                self._gen[key] += 1
            self._data.clear()

    def _on_change(self, table, op, values):
        with self._lock:
            for key, where in list(self._topics.get(table, {}).items()):
                if all(col not in values or values[col] == val for col, val in where.items()):
                    self._drop(key)
                    current_app.logger.debug('Cache invalidated key=%s by %s on %s', key, op, table)

    def __contains__(self, key):
        with self._lock:
            entry = self._data.get(key)
            return entry is not None and (entry[1] is None or self.clock() < entry[1])


feed = ChangeFeed()
cache = QueryCache(feed)


class RedisBridge:
    """Relays change-feed events between processes over a Redis channel."""

    channel = "hackhub:changes"

    def __init__(self, app, feed, redis_conn):
        self.app = app
        self.feed = feed
        self.redis = redis_conn
        self.origin = uuid.uuid4().hex
        self.thread = None

    def forward(self, table, op, values):
        payload = json.dumps({"origin": self.origin, "table": table, "op": op, "values": values}, default=str)
        try:
            self.redis.publish(self.channel, payload)
        except Exception:
            current_app.logger.exception('Change feed publish to redis failed')

    def _on_message(self, message):
        try:
            data = json.loads(message["data"])
        except (TypeError, ValueError):
            return
        if data.get("origin") == self.origin:
            return
        with self.app.app_context():
            self.feed.publish(data["table"], data["op"], data.get("values") or {}, local=False)

    def start(self):
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(**{self.channel: self._on_message})
        self.thread = pubsub.run_in_thread(sleep_time=1.0, daemon=True)
        self.feed.add_forwarder(self.forward)
        return self.thread
