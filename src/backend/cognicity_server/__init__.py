import logging
import time

from flask import Flask, g, request
from flask_cors import CORS

from .config import Config
from .logs import configure_logging

logger = logging.getLogger(__name__)


def create_app(config_object=None, executor=None):
    """Create and configure an instance of the Flask application.

    `executor` replaces the DuckDB database as the query executor; anything with
    an `execute(query_text, parameters)` method returning rows will do.
    """
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    configure_logging(app.config)

    prefix = app.config['URL_PREFIX'].strip('/')
    api_prefix = f"/{prefix}/data/api/v1" if prefix else '/data/api/v1'

    # Enable CORS for data streams only
    CORS(app, resources={rf"{api_prefix}/*": {"origins": "*"}})

    from . import routes
    from .cache import ResultCache
    from .server import CognicityServer

    app.register_blueprint(routes.bp, url_prefix=api_prefix)

    # The database connection is created when the app starts, not on first request
    if executor is None:
        with app.app_context():
            from . import db
            executor = db.Database(app.config)

    app.extensions['cognicity_server'] = CognicityServer(executor, app.config)
    app.extensions['cognicity_cache'] = ResultCache(default_ttl=app.config['CACHE_TIMEOUT'] / 1000.0)

    @app.before_request
    def start_timer():
        g.start_time = time.time()
        logger.info('Incoming request: %s %s args=%s', request.method, request.path, dict(request.args))

    @app.after_request
    def log_request(response):
        if hasattr(g, 'start_time'):
            logger.info(
                'Completed request: %s %s status=%s time=%.3fs',
                request.method, request.path, response.status_code, time.time() - g.start_time,
            )
        return response

    logger.info('Application %s ready under %s', app.config['INSTANCE'], api_prefix)
    return app
