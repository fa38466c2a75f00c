"""Shared fixtures: a mocked collaborator client, sample drafts and the Flask app."""

import pytest
from unittest.mock import MagicMock

from app import create_app
from core.api_client import CollaboratorClient
from models.shipment import (
    DutyInfo,
    Package,
    PackageForm,
    PackageItem,
    PriceDetails,
    Receiver,
    Sender,
    ServiceOption,
    ShipmentDraft,
)
from modules.credit import evaluate_credit
from modules.recompute import DraftLoaded, dispatch


@pytest.fixture
def mock_client():
    """Collaborator client with every endpoint mocked."""
    client = MagicMock(spec=CollaboratorClient)
    client.get_user.return_value = {
        "id": 7,
        "companyName": "Acme Tekstil",
        "address1": "Ataturk Cad 1",
        "city": "Istanbul",
        "postalCode": "34000",
        "phone": "+90 212 000 0000",
        "email": "ops@acme.test",
    }
    client.get_balance.return_value = {"balance": 100000, "minimumBalance": 0}
    client.get_recipients.return_value = []
    client.get_my_shipments.return_value = []
    client.validate_postal_code.return_value = {"isValid": True}
    client.validate_address.return_value = {"isValid": True}
    return client


@pytest.fixture
def sender():
    return Sender(
        name="Acme Tekstil",
        address1="Ataturk Cad 1",
        city="Istanbul",
        postal_code="34000",
        phone="+90 212 000 0000",
        email="ops@acme.test",
    )


@pytest.fixture
def receiver():
    return Receiver(
        name="Jane Doe",
        email="jane@example.com",
        phone="+1 555 0100",
        address="1 Main St",
        state="NY",
        city="New York",
        postal_code="10001",
        country="US",
    )


@pytest.fixture
def item():
    return PackageItem(name="Cotton shirt", hs_code="610910", quantity=2, unit_price=12.5)


@pytest.fixture
def recipient_draft(sender, receiver):
    """Draft with a complete recipient section only."""
    return ShipmentDraft(sender=sender, receiver=receiver, package_contents="Clothing")


@pytest.fixture
def package_draft(recipient_draft, item):
    """Draft ready for Calculate Price: one 30x20x10 cm, 2 kg package."""
    draft = ShipmentDraft(
        sender=recipient_draft.sender,
        receiver=recipient_draft.receiver,
        package_contents=recipient_draft.package_contents,
        package_form=PackageForm(customs_value=25000),
        packages=(Package(length=30, width=20, height=10, weight=2.0, id=1),),
        items=(item,),
    )
    return dispatch(draft, DraftLoaded(draft))


@pytest.fixture
def express_option():
    return ServiceOption(
        display_name="Express",
        total_price=1000,
        base_price=800,
        fuel_charge=200,
        provider_service_code="shipentegra-express",
        duties=DutyInfo(available=True, base_duty_amount=200, tariff_amount=100),
    )


@pytest.fixture
def eco_option():
    return ServiceOption(
        display_name="ECO Saver",
        total_price=700,
        base_price=600,
        fuel_charge=100,
        duties=DutyInfo(available=True, base_duty_amount=200, tariff_amount=100),
    )


@pytest.fixture
def price_details(express_option, eco_option):
    return PriceDetails(
        base_price=800,
        fuel_charge=200,
        total_price=1000,
        duties=express_option.duties,
        options=(express_option, eco_option),
    )


@pytest.fixture
def priced_draft(package_draft, price_details, express_option):
    """Complete draft with a price, the Express option and clear credit."""
    return (
        package_draft
        .with_price(price_details, express_option)
        .with_credit(evaluate_credit(1000, 100000, 0))
    )


@pytest.fixture
def app(mock_client):
    """Flask app in testing mode with the mocked client injected."""
    app = create_app("config.TestingConfig", api_client=mock_client)
    yield app
    app.config["VALIDATION_COORDINATOR"].shutdown()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def store_draft(client):
    """Put a draft into the test client's session."""
    def _store(draft):
        with client.session_transaction() as sess:
            sess["shipment_draft"] = draft.to_session()
    return _store


@pytest.fixture
def session_draft(client):
    """Read the draft back out of the test client's session."""
    def _read():
        with client.session_transaction() as sess:
            return ShipmentDraft.from_session(sess.get("shipment_draft"))
    return _read
