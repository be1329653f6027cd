"""Crosstab endpoints."""

from __future__ import annotations

from flask import jsonify

from . import bp, get_session
from .helpers import data_unavailable, payload, text_arg


@bp.route("/crosstab", methods=["GET"])
async def crosstab():
    unavailable = data_unavailable()
    if unavailable:
        return unavailable

    data = payload()
    session = get_session()
    session.set_pivot(
        row_dim=text_arg(data, "row"),
        col_dim=text_arg(data, "col"),
        metric=text_arg(data, "metric"),
    )
    await session.refresh_crosstab()
    return jsonify(session.crosstab_view())


@bp.route("/crosstab/metric", methods=["POST"])
def crosstab_metric():
    """Switch metric on the assembled matrix without querying."""
    session = get_session()
    session.set_pivot(metric=text_arg(payload(), "metric"))
    return jsonify(session.crosstab_view())


@bp.route("/crosstab/sort", methods=["POST"])
def crosstab_sort():
    """Re-sort rows by a column value or the row total; never queries."""
    session = get_session()
    session.sort_by(text_arg(payload(), "key"))
    return jsonify(session.crosstab_view())
