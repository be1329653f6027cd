"""Healthcheck endpoint."""

from __future__ import annotations

from flask import current_app, jsonify

from survey_explorer.errors import QueryExecutionError

from . import bp, get_datastore


@bp.route("/health", methods=["GET"])
def health():
    datastore = get_datastore()
    try:
        if not datastore.ensure_loaded():
            return jsonify({"ok": False, "error": "Survey data is not available"}), 503
        return (
            jsonify(
                {
                    "ok": True,
                    "rows": datastore.row_count(),
                    "cols": len(datastore.columns()),
                }
            ),
            200,
        )
    except QueryExecutionError as exc:
        current_app.logger.exception("Healthcheck failed")
        return jsonify({"ok": False, "error": exc.message}), 500
