"""
Flask route blueprints for ShipmentCreateWeb.

This module contains all route handlers organized by wizard section:
- main: Wizard entry and reset
- recipient: Receiver/sender fields, address book
- package: Package form, packages, items, price calculation
- price: Service option selection and breakdown
- drafts: Draft save/load
- copy: Copy from a previous shipment
- validation: Address/postal validation polling
- submit: Shipment submission and invoices
- api: Health check and section toggles

Each blueprint is registered with the Flask app in create_app().
"""

from .main import main_bp
from .recipient import recipient_bp
from .package import package_bp
from .price import price_bp
from .drafts import drafts_bp
from .copy_shipment import copy_bp
from .validation import validation_bp
from .submit import submit_bp
from .api import api_bp

__all__ = [
    "main_bp",
    "recipient_bp",
    "package_bp",
    "price_bp",
    "drafts_bp",
    "copy_bp",
    "validation_bp",
    "submit_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(main_bp)
    app.register_blueprint(recipient_bp)
    app.register_blueprint(package_bp)
    app.register_blueprint(price_bp)
    app.register_blueprint(drafts_bp)
    app.register_blueprint(copy_bp)
    app.register_blueprint(validation_bp)
    app.register_blueprint(submit_bp)
    app.register_blueprint(api_bp)
