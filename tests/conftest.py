import pytest

from config import TestingConfig
from marches import create_app, storage
from marches.extensions import db
from marches.security import Role

from .factories import bid_payload, contract_payload, supplier_payload, tender_payload

PASSWORD = "s3cret-Pass"

FULL_NAMES = {
    Role.ADMIN: "Administrateur",
    Role.MARCHES_MANAGER: "Gestionnaire des Marchés",
    Role.ORDONNATEUR: "Ordonnateur",
    Role.TECHNICAL_SERVICE: "Service Technique",
}


def email_for(role) -> str:
    return f"{Role(role).value}@example.com"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    """One account per role: {role value: user id}."""
    ids = {}
    with app.app_context():
        for role in Role:
            user = storage.users.create(
                {
                    "username": role.value,
                    "email": email_for(role),
                    "full_name": FULL_NAMES[role],
                    "role": role.value,
                    "password": PASSWORD,
                }
            )
            ids[role.value] = user.id
        db.session.commit()
    return ids


@pytest.fixture
def login_as(client, users):
    """Log the shared test client in as the given role."""

    def _login(role):
        resp = client.post("/api/auth/login", json={"email": email_for(role), "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return client

    return _login


@pytest.fixture
def award(login_as):
    """Tender + supplier + bid created through the API by the admin: {tender, supplier, bid} ids."""
    client = login_as(Role.ADMIN)

    tender = client.post("/api/tenders", json=tender_payload()).get_json()
    supplier = client.post("/api/suppliers", json=supplier_payload()).get_json()
    bid = client.post("/api/bids", json=bid_payload(tender["id"], supplier["id"])).get_json()

    return {"tender": tender["id"], "supplier": supplier["id"], "bid": bid["id"]}


@pytest.fixture
def contract(login_as, award):
    """A contract on the award fixture, created by the admin. Returns its JSON."""
    client = login_as(Role.ADMIN)
    resp = client.post(
        "/api/contracts",
        json=contract_payload(award["tender"], award["bid"], award["supplier"]),
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()
