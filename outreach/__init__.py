"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
import importlib
import os

from flask import Flask

MODEL_MODULES = [
    'outreach.models.prospect',
    'outreach.models.task',
    'outreach.models.follow_up',
    'outreach.models.notification',
    'outreach.models.activity',
    'outreach.models.campaign',
    'outreach.models.agent_config',
]


def import_models():
    """Import models so Base.metadata knows about every table."""
    for name in MODEL_MODULES:
        importlib.import_module(name)


def create_app():
    """Create and configure the Flask application."""
    from outreach.logging_config import configure_logging

    app = Flask(__name__)
    configure_logging(app)
    app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-change-me')

    # Schema is managed by Alembic — no create_all() here.
    import_models()

    from outreach.routes.agents import bp as agents_bp
    from outreach.routes.health import bp as health_bp
    from outreach.routes.notifications import bp as notifications_bp
    from outreach.routes.webhook import bp as webhook_bp

    app.register_blueprint(agents_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(webhook_bp)

    from outreach.extensions import redis_client
    from outreach.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    return app
