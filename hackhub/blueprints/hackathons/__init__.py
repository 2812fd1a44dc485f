from flask import Blueprint

bp = Blueprint("hackathons", __name__)

from . import routes  # noqa: E402,F401
