"""Shared helper functions for dashboard routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import jsonify, request

from . import get_datastore


def payload() -> Dict[str, Any]:
    """JSON body merged over query-string args."""
    data: Dict[str, Any] = {k: v for k, v in request.args.items()}
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        data.update(body)
    return data


def text_arg(data: Dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = data.get(name)
        if value is not None:
            return str(value)
    return None


def data_unavailable():
    """503 response when the survey table cannot be loaded, else ``None``."""
    if get_datastore().ensure_loaded():
        return None
    return jsonify({"status": "error", "error": "Survey data is not available"}), 503


__all__ = ["data_unavailable", "payload", "text_arg"]
