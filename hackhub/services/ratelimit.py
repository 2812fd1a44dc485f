"""Sliding-window rate limiting backed by the ``rate_limit_attempts`` table."""
from datetime import datetime, timedelta

from flask import current_app, request
from flask_login import current_user

from ..errors import RateLimited
from ..extensions import db
from ..models.rate_limit import RateLimitAttempt


def requester_key():
    """Identity the limiter counts against: the user when logged in, else the client address."""
    if getattr(current_user, "is_authenticated", False):
        return f"user:{current_user.id}"
    forwarded = request.headers.get("X-Forwarded-For", "")
    addr = forwarded.split(",")[0].strip() if forwarded else request.remote_addr
    return f"ip:{addr or 'unknown'}"


class RateLimiter:
    def __init__(self, scope, max_attempts, window_sec):
        self.scope = scope
        self.max_attempts = max_attempts
        self.window = timedelta(seconds=window_sec)

    def _recent(self, key, now):
        return (RateLimitAttempt.query
                .filter(RateLimitAttempt.scope == self.scope,
                        RateLimitAttempt.key == key,
                        RateLimitAttempt.created_at > now - self.window)
                .order_by(RateLimitAttempt.created_at.asc()))

    def remaining(self, key, now=None):
        now = now or datetime.utcnow()
        return max(0, self.max_attempts - self._recent(key, now).count())

    def hit(self, key, now=None):
        """Record an attempt for ``key`` or raise RateLimited when the window is full."""
        now = now or datetime.utcnow()
        # drop attempts that fell out of the window
        (RateLimitAttempt.query
            .filter(RateLimitAttempt.scope == self.scope,
                    RateLimitAttempt.key == key,
                    RateLimitAttempt.created_at <= now - self.window)
            .delete(synchronize_session=False))
        recent = self._recent(key, now).all()
        if len(recent) >= self.max_attempts:
            db.session.commit()
            reset_at = recent[0].created_at + self.window
            retry_after = max(1, int((reset_at - now).total_seconds() + 0.999))
            current_app.logger.info('Rate limit hit scope=%s key=%s retry_after=%s', self.scope, key, retry_after)
            raise RateLimited("Too many attempts. Please wait a moment before trying again.", retry_after=retry_after)
        db.session.add(RateLimitAttempt(scope=self.scope, key=key, created_at=now))
        db.session.commit()
        return self.max_attempts - len(recent) - 1


def invite_code_limiter():
    return RateLimiter(
        "invite-code",
        int(current_app.config.get("INVITE_RATE_LIMIT_ATTEMPTS", 5)),
        int(current_app.config.get("INVITE_RATE_LIMIT_WINDOW_SEC", 60)),
    )
