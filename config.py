"""
Configuration for ShipmentCreateWeb.

The pricing, duty, address validation and draft storage services are external
collaborators reached over HTTP. Their base URL is required in production;
everything else has a working default.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _optional_float(name: str):
    value = os.environ.get(name)
    return float(value) if value else None


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    MAX_CONTENT_LENGTH = 12 * 1024 * 1024  # 12 MB request cap (invoice + form overhead)
    SESSION_COOKIE_NAME = "shipment_create_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")

    # Debug mode
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # ==========================================================================
    # Collaborator API
    # ==========================================================================
    # All pricing, duty, validation, draft and shipment storage happens behind
    # this base URL. No timeout or retry is applied unless COLLABORATOR_TIMEOUT
    # is set; failures are reported once and the user re-attempts the action.
    # ==========================================================================
    COLLABORATOR_BASE_URL = os.environ.get(
        "COLLABORATOR_BASE_URL", "http://localhost:5000/api"
    )
    COLLABORATOR_API_TOKEN = os.environ.get("COLLABORATOR_API_TOKEN")
    COLLABORATOR_TIMEOUT = _optional_float("COLLABORATOR_TIMEOUT")

    # ==========================================================================
    # Pricing Configuration
    # ==========================================================================
    # VOLUMETRIC_DIVISOR: cm^3 per kg-equivalent (L x W x H / divisor)
    # INSURANCE_RATE: fraction of the declared value charged for insurance
    # DDP_PROCESSING_FEE_*: flat fee (minor units) for US duty-paid shipments
    # ==========================================================================
    VOLUMETRIC_DIVISOR = float(os.environ.get("VOLUMETRIC_DIVISOR", "5000"))
    INSURANCE_RATE = float(os.environ.get("INSURANCE_RATE", "0.01"))
    DDP_PROCESSING_FEE_STANDARD = int(os.environ.get("DDP_PROCESSING_FEE_STANDARD", "450"))
    DDP_PROCESSING_FEE_ECO = int(os.environ.get("DDP_PROCESSING_FEE_ECO", "45"))

    # Address / postal validation debounce windows
    POSTAL_VALIDATION_DEBOUNCE_SECONDS = float(
        os.environ.get("POSTAL_VALIDATION_DEBOUNCE_SECONDS", "1.0")
    )
    ADDRESS_VALIDATION_DEBOUNCE_SECONDS = float(
        os.environ.get("ADDRESS_VALIDATION_DEBOUNCE_SECONDS", "1.5")
    )
    # Idle sessions lose their validation memos after this long
    VALIDATION_SESSION_TTL_SECONDS = float(
        os.environ.get("VALIDATION_SESSION_TTL_SECONDS", "3600")
    )

    # Invoice uploads (PDF only)
    INVOICE_MAX_BYTES = 10 * 1024 * 1024

    # Used when the receiver leaves the email field blank
    DEFAULT_RECEIVER_EMAIL = os.environ.get(
        "DEFAULT_RECEIVER_EMAIL", "info@example.com"
    )


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    SECRET_KEY = "testing-secret-key"
    COLLABORATOR_BASE_URL = "http://collaborator.test/api"
    POSTAL_VALIDATION_DEBOUNCE_SECONDS = 0.0
    ADDRESS_VALIDATION_DEBOUNCE_SECONDS = 0.0
