"""Dashboard blueprint package."""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from survey_explorer.errors import ExplorerError, QueryExecutionError

bp = Blueprint("dashboard", __name__)


def get_session():
    from flask import current_app

    return current_app.extensions["explorer"]


def get_datastore():
    from flask import current_app

    return current_app.extensions["datastore"]


@bp.before_request
def _lock_session():
    """Serialize requests: the dev server is threaded, the session is not."""
    get_session().lock.acquire()
    g.session_locked = True


@bp.teardown_request
def _unlock_session(exc):
    if g.pop("session_locked", False):
        get_session().lock.release()


@bp.errorhandler(QueryExecutionError)
def _query_failed(exc: QueryExecutionError):
    return jsonify({"status": "error", "error": exc.message}), 502


@bp.errorhandler(ExplorerError)
def _bad_request(exc: ExplorerError):
    return jsonify({"status": "error", "error": str(exc)}), 400


from . import charts, crosstab, filters, health  # noqa: E402,F401

__all__ = ["bp", "get_session", "get_datastore"]
