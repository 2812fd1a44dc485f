from flask import current_app
from flask_login import login_user, logout_user, login_required, current_user

from . import bp
from .forms import LoginForm, SignupForm
from ...errors import Conflict, NotFound, PermissionDenied, ValidationError, form_error
from ...extensions import db
from ...models.judging import Judge
from ...models.user import User
from ...utils.forms import json_body, ok


@bp.post("/signup")
def signup():
    form = SignupForm()
    if not form.validate_on_submit():
        raise form_error(form)
    email = form.email.data.strip().lower()
    if User.query.filter(db.func.lower(User.email) == email).first():
        raise Conflict("An account with this email already exists")

    # the very first account runs the platform
    role = "admin" if User.query.first() is None else "user"
    user = User(email=email, full_name=form.full_name.data or None, role=role)
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.flush()
    # judges invited before they had an account
    for judge in Judge.query.filter(db.func.lower(Judge.email) == email, Judge.user_id.is_(None)).all():
        judge.user_id = user.id
    db.session.commit()
    login_user(user)
    current_app.logger.info('User %s signed up role=%s', user.id, role)
    return ok(user=user.to_dict(), status=201)


@bp.post("/login")
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        raise form_error(form)
    user = User.query.filter(db.func.lower(User.email) == form.email.data.strip().lower()).first()
    if not user or not user.check_password(form.password.data):
        raise ValidationError("Invalid credentials")
    login_user(user)
    return ok(user=user.to_dict())


@bp.post("/logout")
@login_required
def logout():
    logout_user()
    return ok()


@bp.get("/me")
@login_required
def me():
    return ok(user=current_user.to_dict())


@bp.patch("/me")
@login_required
def update_me():
    data = json_body()
    if "full_name" in data:
        current_user.full_name = (data.get("full_name") or "").strip() or None
    db.session.commit()
    return ok(user=current_user.to_dict())


@bp.post("/users/<int:user_id>/role")
@login_required
def set_role(user_id):
    """Admins promote users to organizers (or back)."""
    if current_user.role != "admin":
        raise PermissionDenied("Only admins can change roles")
    role = (json_body().get("role") or "").strip()
    if role not in ("user", "organizer", "admin"):
        raise ValidationError("role must be user, organizer or admin")
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    user.role = role
    db.session.commit()
    return ok(user=user.to_dict())
