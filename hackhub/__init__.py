from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy.orm import Session

from .errors import register_error_handlers
from .extensions import db, login_manager, rq
from . import models  # noqa: F401
from .services.cache import RedisBridge, cache, feed

migrate = Migrate()


def create_app(overrides=None):
    """Application factory.

    ``overrides`` is applied on top of ``config.Config`` (tests pass an
    in-memory database and RQ_EAGER here).
    """
    app = Flask(__name__)
    app.config.from_object('config.Config')
    if overrides:
        app.config.update(overrides)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    rq.init_app(app)
    register_error_handlers(app)

    # committed rows feed the query cache; a fresh app starts cold
    feed.install(Session)
    cache.clear()
    cache.ttl = app.config.get("CACHE_TTL_SEC") or None
    if app.config.get("CHANGE_FEED_REDIS") and rq.redis is not None:
        try:
            rq.redis.ping()
            RedisBridge(app, feed, rq.redis).start()
        except Exception:
            app.logger.exception('Change feed redis bridge unavailable; cache invalidation stays local')

    @login_manager.user_loader
    def load_user(user_id):
        from .models.user import User
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"ok": False, "error": "Login required"}), 401

    from .blueprints.auth import bp as auth_bp
    from .blueprints.hackathons import bp as hackathons_bp
    from .blueprints.teams import bp as teams_bp
    from .blueprints.applications import bp as applications_bp
    from .blueprints.projects import bp as projects_bp
    from .blueprints.judging import bp as judging_bp
    from .blueprints.notifications import bp as notifications_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(hackathons_bp, url_prefix="/hackathons")
    app.register_blueprint(teams_bp, url_prefix="/hackathons/<int:hackathon_id>/teams")
    app.register_blueprint(applications_bp, url_prefix="/hackathons/<int:hackathon_id>/applications")
    app.register_blueprint(projects_bp, url_prefix="/hackathons/<int:hackathon_id>/projects")
    app.register_blueprint(judging_bp, url_prefix="/hackathons/<int:hackathon_id>/judging")
    app.register_blueprint(notifications_bp, url_prefix="/notifications")

    @app.get('/')
    def index():
        from .models.hackathon import Hackathon
        live = Hackathon.query.filter_by(status="live").count()
        return jsonify({"name": "hackhub", "live_hackathons": live})

    @app.get('/dashboard')
    def dashboard():
        """Everything the logged-in user takes part in, one entry per hackathon."""
        from flask_login import current_user
        if not current_user.is_authenticated:
            return unauthorized()

        from .models.application import Application
        from .models.hackathon import Hackathon
        from .models.judging import Judge
        from .models.team import Team, TeamMember

        entries = {}

        def entry(hackathon_id):
            if hackathon_id not in entries:
                h = db.session.get(Hackathon, hackathon_id)
                entries[hackathon_id] = {"hackathon": h.to_dict() if h else {"id": hackathon_id},
                                         "application": None, "team": None, "membership": None,
                                         "is_judge": False, "is_organizer": bool(h and h.is_organizer(current_user))}
            return entries[hackathon_id]

        for a in Application.query.filter_by(user_id=current_user.id).all():
            entry(a.hackathon_id)["application"] = a.to_dict()
        rows = (db.session.query(TeamMember, Team).join(Team, Team.id == TeamMember.team_id)
                .filter(TeamMember.user_id == current_user.id).all())
        for m, t in rows:
            e = entry(t.hackathon_id)
            e["team"] = t.to_dict()
            e["membership"] = m.to_dict()
        for j in Judge.query.filter_by(user_id=current_user.id).all():
            entry(j.hackathon_id)["is_judge"] = True
        for h in Hackathon.query.filter_by(created_by=current_user.id).all():
            entry(h.id)

        return jsonify({"ok": True, "items": list(entries.values())})

    return app
