"""Filter endpoints for dashboard."""

from __future__ import annotations

from flask import jsonify

from . import bp, get_datastore, get_session
from .helpers import data_unavailable, payload, text_arg


@bp.route("/dimensions", methods=["GET"])
def dimensions():
    session = get_session()
    present = session.registry.available(get_datastore().columns())
    return jsonify(
        {
            "dimensions": session.registry.to_list(),
            "present": [d.id for d in present],
            "filters": session.filter_dimensions,
            "charts": list(session.chart_service.charts),
        }
    )


@bp.route("/filters", methods=["GET"])
def filter_state():
    return jsonify(get_session().filter_view())


@bp.route("/filters", methods=["POST"])
def set_filter():
    """Dropdown change: set or clear one dimension."""
    data = payload()
    session = get_session()
    session.filters.set_value(text_arg(data, "dimension"), text_arg(data, "value"))
    return jsonify(session.filter_view())


@bp.route("/filters/toggle", methods=["POST"])
def toggle_filter():
    """Chart segment click."""
    data = payload()
    session = get_session()
    session.filters.toggle_chart_filter(text_arg(data, "dimension"), text_arg(data, "value"))
    return jsonify(session.filter_view())


@bp.route("/filters/remove", methods=["POST"])
def remove_filter():
    """Pill click."""
    session = get_session()
    session.filters.remove(text_arg(payload(), "dimension"))
    return jsonify(session.filter_view())


@bp.route("/filters/search", methods=["POST"])
def search_filter():
    session = get_session()
    session.filters.set_search(text_arg(payload(), "q", "search"))
    return jsonify(session.filter_view())


@bp.route("/filters/reset", methods=["POST"])
def reset_filters():
    session = get_session()
    session.filters.clear()
    return jsonify(session.filter_view())


@bp.route("/filters/restore", methods=["POST"])
def restore_filters():
    """Apply a persisted state (JSON shape or query string), dropping stale values."""
    unavailable = data_unavailable()
    if unavailable:
        return unavailable

    data = payload()
    session = get_session()
    query_string = text_arg(data, "query_string")
    if query_string is not None:
        state = session.filters.parse_query_string(query_string)
    else:
        state = data.get("state") if isinstance(data.get("state"), dict) else data

    rejected = session.filters.restore(state, session.known_values)
    view = session.filter_view()
    view["rejected"] = [{"dimension": d, "value": v} for d, v in rejected]
    return jsonify(view)


@bp.route("/filters/options", methods=["GET"])
async def filter_options():
    unavailable = data_unavailable()
    if unavailable:
        return unavailable

    session = get_session()
    options = await session.chart_service.options(session.filter_dimensions)
    return jsonify(
        {
            "options": {
                dim: [{"value": r.label, "count": r.count} for r in rows]
                for dim, rows in options.items()
            },
            "selected": session.filters.snapshot().as_dict(),
        }
    )


@bp.route("/count", methods=["GET"])
async def record_count():
    unavailable = data_unavailable()
    if unavailable:
        return unavailable

    total, filtered = await get_session().chart_service.counts(get_session().filters.snapshot())
    return jsonify({"total": total, "filtered": filtered})
