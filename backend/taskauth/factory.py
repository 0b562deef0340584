"""Application factory wiring Flask extensions, credentials and blueprints."""

from __future__ import annotations

from flask import Flask

from taskauth.core.config import BaseConfig, get_config
from taskauth.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    Raises
    ------
    taskauth.services._shared.errors.ConfigurationError
        When signing keys or the refresh secret are missing in a
        production-like environment, or the key material is unusable.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from taskauth.core import proxy

    proxy.init_app(app)

    from taskauth.core import extensions

    extensions.init_app(app)

    init_logging(app)

    # Fails fast on missing or broken key material
    from taskauth.core import security

    security.init_app(app)

    from taskauth.core import cors

    cors.init_app(app)

    from taskauth.api import init_app as init_api

    init_api(app)

    from taskauth.core import errors

    errors.init_app(app)

    from taskauth import cli as app_cli

    app_cli.init_app(app)

    return app
