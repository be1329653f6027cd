"""Chart data endpoints."""

from __future__ import annotations

from flask import jsonify

from . import bp, get_session
from .helpers import data_unavailable


@bp.route("/chart-data", methods=["GET"])
async def chart_data():
    """Top values for every configured chart, computed in DuckDB."""
    unavailable = data_unavailable()
    if unavailable:
        return unavailable

    session = get_session()
    batch = await session.refresh_charts()
    if batch is None:
        return jsonify({"status": "pending", "charts": []})

    return jsonify(
        {
            "status": "ok",
            "generation": batch.generation,
            "charts": [chart.to_dict() for chart in batch.charts],
        }
    )
