from functools import wraps
from flask import abort
from flask_login import current_user

from ..errors import PermissionDenied


def organizer_required(view):
    """Only organizers (and admins) may create and run hackathons."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            abort(401)
        if getattr(current_user, "role", None) not in ("organizer", "admin"):
            abort(403)
        return view(*args, **kwargs)
    return wrapped


def require_hackathon_organizer(hackathon):
    if not hackathon.is_organizer(current_user):
        raise PermissionDenied("Only organizers of this hackathon can do this")
