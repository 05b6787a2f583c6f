"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from account_hub.core.config import BaseConfig, get_config
from account_hub.core.logger import configure_logging
from account_hub.core.logger import init_app as init_logging


def create_app(config: str | type[BaseConfig] | object | None = None) -> Flask:
    """Build and configure the Flask application.

    :param config: Config class, object or import path; defaults to the class
        selected by ``APP_ENV``.
    """

    app = Flask(__name__)
    app.config.from_object(get_config() if config is None else config)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from account_hub.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from account_hub.core import cors

    cors.init_app(app)

    from account_hub.api import init_app as init_api

    init_api(app)

    from account_hub.core import errors

    errors.init_app(app)

    return app
