"""
ShipmentCreateWeb - Flask Application Entry Point.

This is a slim app factory that:
1. Configures logging
2. Creates the collaborator client and the services that share it
3. Registers route blueprints
4. Sets up JSON error handlers and the shutdown hook

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (session draft in, next snapshot out)
    └── Cleanup on shutdown (cancel timers, close HTTP session)

    Validation Timer Threads (one per pending field)
    └── Debounced address/postal validation, outcomes via the store

The request thread is the only writer of the session draft. Timer threads
only ever write to the validation outcome store.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, session
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import APP_LOGGER_NAME, bind_session, setup_logging, get_logger
from core.api_client import CollaboratorClient
from modules.invoice_inspector import InvoiceInspector
from services.credit_service import CreditService
from services.draft_service import DraftService
from services.pricing_service import PricingService
from services.shipment_service import ShipmentService
from services.validation_coordinator import AddressValidationCoordinator
from routes import register_blueprints
from routes.state import SESSION_VALIDATION_KEY


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In PyInstaller bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def create_app(
    config_object: str = "config.Config",
    api_client: Optional[CollaboratorClient] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the config class
        api_client: Collaborator client to use instead of building one
            from the config (tests inject a mock here)

    Returns:
        Configured Flask application
    """
    # Use override=True so .env file always takes precedence over shell environment
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    # Create Flask app
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        app_name=APP_LOGGER_NAME,
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting ShipmentCreateWeb in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    client = api_client or CollaboratorClient(
        base_url=app.config["COLLABORATOR_BASE_URL"],
        api_token=app.config.get("COLLABORATOR_API_TOKEN"),
        timeout=app.config.get("COLLABORATOR_TIMEOUT"),
    )
    app.config["COLLABORATOR_CLIENT"] = client

    credit_service = CreditService(client)
    app.config["CREDIT_SERVICE"] = credit_service

    app.config["PRICING_SERVICE"] = PricingService(
        client, volumetric_divisor=app.config["VOLUMETRIC_DIVISOR"]
    )
    app.config["DRAFT_SERVICE"] = DraftService(client)
    app.config["SHIPMENT_SERVICE"] = ShipmentService(
        client,
        credit_service,
        inspector=InvoiceInspector(app.config["INVOICE_MAX_BYTES"]),
        default_receiver_email=app.config["DEFAULT_RECEIVER_EMAIL"],
        insurance_rate=app.config["INSURANCE_RATE"],
        standard_fee=app.config["DDP_PROCESSING_FEE_STANDARD"],
        eco_fee=app.config["DDP_PROCESSING_FEE_ECO"],
    )

    coordinator = AddressValidationCoordinator(
        client,
        postal_debounce=app.config["POSTAL_VALIDATION_DEBOUNCE_SECONDS"],
        address_debounce=app.config["ADDRESS_VALIDATION_DEBOUNCE_SECONDS"],
        session_ttl=app.config["VALIDATION_SESSION_TTL_SECONDS"],
    )
    app.config["VALIDATION_COORDINATOR"] = coordinator
    logger.info("Services initialized")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        coordinator.shutdown()
        if api_client is None:
            client.close()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    @app.before_request
    def tag_log_session():
        bind_session(session.get(SESSION_VALIDATION_KEY))

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 12 * 1024 * 1024) / (1024 * 1024)
        return jsonify({
            "error": f"File too large. Maximum upload size is {max_mb:.0f} MB.",
        }), 413

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        logger.error(f"Unhandled error: {e}", exc_info=True)
        return jsonify({
            "error": "An unexpected error occurred. Please try again.",
            "actions": ["retry", "dashboard"],
        }), 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)
