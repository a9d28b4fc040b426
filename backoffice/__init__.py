# backoffice/__init__.py

import logging
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from .config import Config

db = SQLAlchemy()
migrate = Migrate()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Configure logging to show INFO level messages
    app.logger.setLevel(logging.INFO)
    if not app.logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        formatter = logging.Formatter('[%(asctime)s] %(levelname)s: %(message)s')
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)

    db.init_app(app)
    migrate.init_app(app, db)

    # The SPA is served from a different origin and sends the Supabase
    # access token in the Authorization header.
    CORS(app, supports_credentials=True, origins=app.config['CORS_ORIGINS'])

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"success": False, "error": "Recurso no encontrado.", "error_code": 404}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"success": False, "error": "Método no permitido.", "error_code": 405}), 405

    # --- REGISTER BLUEPRINTS ---
    from .api.health import bp as health_bp
    from .api.admin import bp as admin_bp
    from .api.clients import bp as clients_bp
    from .api.collections import bp as collections_bp
    from .api.renewals import bp as renewals_bp
    from .api.commissions import bp as commissions_bp
    from .api.sales import bp as sales_bp
    from .api.partnerships import bp as partnerships_bp
    from .api.birthdays import bp as birthdays_bp
    from .api.finances import bp as finances_bp
    from .api.consumptions import bp as consumptions_bp
    from .api.settings import bp as settings_bp
    from .api.email import bp as email_bp

    for blueprint in (
        health_bp, admin_bp, clients_bp, collections_bp, renewals_bp,
        commissions_bp, sales_bp, partnerships_bp, birthdays_bp,
        finances_bp, consumptions_bp, settings_bp, email_bp,
    ):
        app.register_blueprint(blueprint, url_prefix='/api')

    from .auth import bp as auth_blueprint
    app.register_blueprint(auth_blueprint, url_prefix='/auth')

    with app.app_context():
        from . import models  # noqa: F401

    return app
