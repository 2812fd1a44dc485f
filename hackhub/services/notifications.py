from flask import current_app

from ..extensions import db, rq
from ..models.notification import Notification


def notify(user_id, type_, title, message, **metadata):
    """Queue an in-app notification on the current session (caller commits)."""
    if not user_id:
        return None
    n = Notification(user_id=user_id, type=type_, title=title, message=message, extra=metadata or None)
    db.session.add(n)
    return n


def queue_email(func, *args):
    """Hand an e-mail job to RQ. Mail failures never fail the calling action."""
    try:
        return rq.enqueue(func, *args)
    except Exception:
        current_app.logger.exception('Failed to queue %s', getattr(func, '__name__', func))
        return None
