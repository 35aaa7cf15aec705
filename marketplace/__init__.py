from flask import Flask, jsonify
from flask_migrate import Migrate
from flask_login import LoginManager
from marketplace.extensions import db
from marketplace.config import Config
from marketplace.errors import register_error_handlers
from marketplace.middleware import setup_auth_middleware, LOGIN_REQUIRED_BODY
import click
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('app.log'),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

migrate = Migrate()
login_manager = LoginManager()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from marketplace.services.paystack_service import PaystackClient
    app.extensions['payment_gateway'] = PaystackClient.from_config(app.config)

    # Setup user loader
    from marketplace.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(LOGIN_REQUIRED_BODY), 401

    # Register blueprints
    from marketplace.blueprints import (
        admin,
        auth,
        cart,
        checkout,
        orders,
        payments,
        refunds,
    )

    # Blueprints declare absolute routes.
    app.register_blueprint(auth.bp)
    app.register_blueprint(cart.bp)
    app.register_blueprint(checkout.bp)
    app.register_blueprint(payments.bp)
    app.register_blueprint(orders.bp)
    app.register_blueprint(refunds.bp)
    app.register_blueprint(admin.bp)

    @app.route('/')
    def index():
        return jsonify({'status': 'ok'})

    register_error_handlers(app)

    # Setup authentication middleware (site-wide login protection)
    setup_auth_middleware(app)

    @app.cli.command('sweep-expired')
    def sweep_expired_command():
        """Delete expired orders and refunds past retention."""
        from marketplace.services.expiry_service import sweep_expired
        removed = sweep_expired()
        click.echo(
            f"Removed {removed['orders']} orders and "
            f"{removed['refunds']} refunds")

    # Note: Database tables are managed via Flask-Migrate
    # Use 'flask db upgrade' to create/update tables

    logger.info("Flask application initialized")
    return app
