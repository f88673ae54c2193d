import logging
import os

from flask import Flask, current_app, send_from_directory
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy

from portfolio_cms.config import Config

cors = CORS()
db = SQLAlchemy()

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    if not app.testing:
        from portfolio_cms.logging_setup import setup_logging
        setup_logging(app.config.get('LOG_LEVEL', 'INFO'), app.config.get('LOG_FILE'))

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    cors.init_app(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
    db.init_app(app)

    from portfolio_cms import models  # noqa: F401
    from portfolio_cms.cli import register_cli, seed_defaults
    from portfolio_cms.security import LoginThrottle

    with app.app_context():
        db.create_all()
        seed_defaults()

    app.extensions['login_throttle'] = LoginThrottle(
        app.config['LOGIN_MAX_ATTEMPTS'],
        app.config['LOGIN_LOCKOUT_MINUTES'],
    )

    from portfolio_cms.routes import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    # --- Serve Uploaded Files ---
    @app.route('/uploads/<path:filename>', methods=['GET'])
    def uploaded_file(filename):
        return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)

    from portfolio_cms.errors import register_error_handlers
    register_error_handlers(app)
    register_cli(app)

    logger.info("Portfolio CMS started (uploads in %s)", app.config['UPLOAD_FOLDER'])
    return app
