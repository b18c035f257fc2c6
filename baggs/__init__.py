import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

logger = logging.getLogger(__name__)


def configure_logging(app):
    level = getattr(logging, app.config['LOG_LEVEL'], logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    logging.getLogger('baggs').setLevel(level)


def init_sentry(app):
    """Error tracking is only enabled when SENTRY_DSN is configured"""
    dsn = app.config.get('SENTRY_DSN')
    if not dsn:
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.1,
        environment=os.environ.get('FLASK_ENV', 'development'),
        send_default_pii=False,
    )
    logger.info('Sentry error tracking enabled')


def create_app(config_name=None):
    """Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    from baggs.config import config
    app.config.from_object(config.get(config_name, config['default']))

    configure_logging(app)
    init_sentry(app)

    # Initialize extensions
    from baggs.extensions import limiter
    from baggs.socket_events import socketio

    db.init_app(app)
    CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
    limiter.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=app.config['CORS_ORIGINS'],
        async_mode=app.config['SOCKETIO_ASYNC_MODE'],
    )

    from baggs import models  # noqa: F401  (register tables with the metadata)
    from baggs.errors import register_error_handlers
    register_error_handlers(app, db)

    # Register blueprints
    from baggs.routes.auth import auth_bp
    from baggs.routes.users import users_bp
    from baggs.routes.workers import workers_bp
    from baggs.routes.transfers import transfers_bp
    from baggs.routes.complaints import complaints_bp
    from baggs.routes.notifications import notifications_bp
    from baggs.routes.ads import ads_bp
    from baggs.routes.docs import docs_bp

    api_prefix = app.config['API_PREFIX']
    app.register_blueprint(auth_bp, url_prefix=f'{api_prefix}/auth')
    app.register_blueprint(users_bp, url_prefix=f'{api_prefix}/users')
    app.register_blueprint(workers_bp, url_prefix=f'{api_prefix}/workers')
    app.register_blueprint(transfers_bp, url_prefix=f'{api_prefix}/transfers')
    app.register_blueprint(complaints_bp, url_prefix=f'{api_prefix}/complaints')
    app.register_blueprint(notifications_bp, url_prefix=f'{api_prefix}/notifications')
    app.register_blueprint(ads_bp, url_prefix=f'{api_prefix}/ads')
    app.register_blueprint(docs_bp)

    @app.route('/health')
    @limiter.exempt
    def health():
        return jsonify({'status': 'ok', 'service': 'baggs-backend'}), 200

    @app.route('/')
    def index():
        return jsonify({
            'message': 'Welcome to the Baggs API',
            'docs': '/api-docs',
        }), 200

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        if not app.debug and not app.testing:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    from baggs.cli import register_commands
    register_commands(app)

    logger.debug('Application created with %s config', config_name)
    return app
