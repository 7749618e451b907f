from flask import Flask, render_template

from . import config
from .errors import StoreError
from .extensions import init_extensions
from .logging import get_logger
from .services import db_service

logger = get_logger(__name__)


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, template_folder="../../templates", static_folder="../../static")
    app.secret_key = config.SECRET_KEY
    app.config.update(
        DB_PATH=config.DB_PATH,
        BREAK_MINUTES=config.BREAK_MINUTES,
        ROLE_RETRY_ATTEMPTS=config.ROLE_RETRY_ATTEMPTS,
        ROLE_RETRY_WAIT=config.ROLE_RETRY_WAIT,
        ROLE_RETRY_MAX_WAIT=config.ROLE_RETRY_MAX_WAIT,
        ROLE_CACHE_SIZE=config.ROLE_CACHE_SIZE,
        LOG_LEVEL=config.LOG_LEVEL,
        LOG_JSON=config.LOG_JSON,
    )
    if test_config:
        app.config.update(test_config)

    init_extensions(app)
    db_service.init_app(app)

    from .routes.auth import bp as auth_bp
    from .routes.portal import bp as portal_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(portal_bp)

    @app.errorhandler(StoreError)
    def store_error(e: StoreError):
        logger.error("unhandled_store_error", error=str(e))
        return render_template("error.html", page_title="Something went wrong", error=str(e)), 503

    return app
