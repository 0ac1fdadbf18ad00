from __future__ import annotations

import logging

import click
from flask import Flask
from flask_cors import CORS

from .config import Config
from .errors import register_error_handlers
from .extensions import db, migrate, login_manager


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Extensions
    CORS(app, supports_credentials=True)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Blueprints
    from .auth.routes import bp as auth_bp
    from .admin.routes import bp as admin_bp
    from .company.routes import bp as company_bp
    from .researcher.routes import bp as researcher_bp
    from .api.routes import bp as api_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(company_bp)
    app.register_blueprint(researcher_bp)
    app.register_blueprint(api_bp)

    register_error_handlers(app)

    @app.cli.command('create-admin')
    @click.option('--name', default='Administrador')
    def create_admin_command(name):
        """Create the bootstrap administrator from ADMIN_EMAIL / ADMIN_PASSWORD."""
        from .auth.routes import ensure_admin
        admin = ensure_admin(app.config['ADMIN_EMAIL'], app.config['ADMIN_PASSWORD'], name)
        click.echo(f'admin ready: {admin.email}')

    return app
