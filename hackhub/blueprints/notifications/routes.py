from flask import request
from flask_login import login_required, current_user

from . import bp
from ...errors import NotFound
from ...extensions import db
from ...models.notification import Notification
from ...utils.forms import ok


@bp.get("")
@login_required
def list_notifications():
    query = Notification.query.filter_by(user_id=current_user.id)
    if request.args.get("unread"):
        query = query.filter_by(read=False)
    limit = min(request.args.get("limit", default=50, type=int), 200)
    rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    return ok(items=[n.to_dict() for n in rows])


@bp.get("/unread-count")
@login_required
def unread_count():
    count = Notification.query.filter_by(user_id=current_user.id, read=False).count()
    return ok(count=count)


@bp.post("/<int:notification_id>/read")
@login_required
def mark_read(notification_id):
    n = db.session.get(Notification, notification_id)
    if not n or n.user_id != current_user.id:
        raise NotFound("Notification not found")
    n.read = True
    db.session.commit()
    return ok(notification=n.to_dict())


@bp.post("/read-all")
@login_required
def mark_all_read():
    updated = (Notification.query.filter_by(user_id=current_user.id, read=False)
               .update({"read": True}, synchronize_session=False))
    db.session.commit()
    return ok(updated=updated)
