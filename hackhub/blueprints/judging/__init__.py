from flask import Blueprint

bp = Blueprint("judging", __name__)

from . import routes  # noqa: E402,F401
