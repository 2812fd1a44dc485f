from flask import jsonify, request
from flask_wtf import FlaskForm


class ApiForm(FlaskForm):
    """FlaskForm fed from JSON request bodies, without CSRF tokens."""

    class Meta:
        csrf = False


def json_body():
    return request.get_json(silent=True) or {}


def ok(message=None, status=200, **data):
    body = {"ok": True}
    if message:
        body["message"] = message
    body.update(data)
    return jsonify(body), status
