"""Application factory for the survey explorer."""

from __future__ import annotations

import logging

from typing import Any, Mapping, Optional, Union

from flask import Flask

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("survey_explorer")

from .config import Config
from .routes.dashboard import bp as dashboard_bp
from .services.datastore import DataStore
from .services.session import ExplorerSession


def create_app(
    config_object: Optional[Union[str, Mapping[str, Any], type]] = None,
) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(Config)

    if isinstance(config_object, Mapping):
        app.config.from_mapping(config_object)
    elif config_object is not None:
        app.config.from_object(config_object)

    datastore = DataStore(app.config)
    session = ExplorerSession(app.config, executor=datastore, datastore=datastore)

    app.extensions["datastore"] = datastore
    app.extensions["explorer"] = session

    app.register_blueprint(dashboard_bp)
    logger.info("Survey explorer ready (table %s)", datastore.table)

    return app


__all__ = ["create_app"]
