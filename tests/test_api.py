"""HTTP-level tests for the donation routes."""

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))
os.environ.setdefault("DB_URL", "sqlite://")

from donation_app.db.session import Base, get_db
from donation_app.main import app
from donation_app.models.item import Item
from donation_app.models.user import User


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def seeded(session_factory):
    with session_factory() as db:
        user = User(email="partner@example.org")
        crib = Item(name="Crib", category="Furniture", quantity_new=5, quantity_used=0, value_new=100, value_used=40)
        db.add_all([user, crib])
        db.commit()
        return {"user_id": user.id, "crib_id": crib.id}


def _stock(session_factory, item_id):
    with session_factory() as db:
        return db.get(Item, item_id).quantity_new


def _body(**overrides):
    body = {
        "email": "partner@example.org",
        "donationDetails": [{"item": "Crib", "category": "Furniture", "newQuantity": 3, "usedQuantity": 0}],
        "numberServed": 3,
        "whiteNum": 1,
        "latinoNum": 2,
        "blackNum": 0,
        "nativeNum": 0,
        "asianNum": 0,
        "otherNum": 0,
    }
    body.update(overrides)
    return body


def test_create_outgoing_returns_stats_record(client, seeded, session_factory):
    response = client.post("/donation/v1/outgoing", json=_body())

    assert response.status_code == 200
    payload = response.json()
    assert payload["numberServed"] == 3
    assert payload["latinoNum"] == 2
    assert "donationId" in payload
    assert response.headers["X-Request-ID"]
    assert _stock(session_factory, seeded["crib_id"]) == 2


def test_update_then_read_details_and_demographics(client, seeded, session_factory):
    created = client.post("/donation/v1/outgoing", json=_body()).json()
    donation_id = created["donationId"]

    response = client.put(
        f"/donation/v1/outgoing/{donation_id}",
        json=_body(
            email=None,
            donationDetails=[{"item": "Crib", "newQuantity": 1, "usedQuantity": 0}],
            numberServed=None,
            whiteNum=4,
            latinoNum=0,
        ),
    )
    assert response.status_code == 200
    assert response.json() == {"message": "Outgoing Donation Updated"}
    assert _stock(session_factory, seeded["crib_id"]) == 4

    details = client.get(f"/donation/v1/details/{donation_id}").json()
    assert details == [
        {
            "id": seeded["crib_id"],
            "name": "Crib",
            "quantityUsed": 0,
            "quantityNew": 1,
            "valueUsed": 40.0,
            "valueNew": 100.0,
        }
    ]
    demographics = client.get(f"/donation/v1/demographics/{donation_id}").json()
    assert demographics["numberServed"] == 4
    assert demographics["whiteNum"] == 4


def test_insufficient_stock_maps_to_400_envelope(client, seeded, session_factory):
    body = _body(donationDetails=[{"itemId": seeded["crib_id"], "newQuantity": 6, "usedQuantity": 0}])
    response = client.post("/donation/v1/outgoing", json=body)

    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "insufficient_stock"
    assert payload["details"]["shortfall"] == 1
    assert _stock(session_factory, seeded["crib_id"]) == 5


def test_negative_count_and_zero_served_are_rejected(client, seeded):
    negative = client.post("/donation/v1/outgoing", json=_body(numberServed=None, whiteNum=-1))
    zero = client.post("/donation/v1/outgoing", json=_body(numberServed=0, whiteNum=0, latinoNum=0))

    assert negative.status_code == 400
    assert negative.json()["code"] == "validation_error"
    assert zero.status_code == 400
    assert "zero" in zero.json()["message"]


def test_unknown_user_is_404(client, seeded):
    response = client.post("/donation/v1/outgoing", json=_body(email="ghost@example.org"))
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_update_naming_unknown_user_is_404(client, seeded, session_factory):
    donation_id = client.post("/donation/v1/outgoing", json=_body()).json()["donationId"]

    response = client.put(f"/donation/v1/outgoing/{donation_id}", json=_body(email="ghost@example.org"))

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
    assert _stock(session_factory, seeded["crib_id"]) == 2


def test_user_id_zero_does_not_fall_back_to_email(client, seeded):
    response = client.post("/donation/v1/outgoing", json=_body(userId=0))
    assert response.status_code == 404


def test_detail_without_item_reference_is_schema_error(client, seeded):
    response = client.post("/donation/v1/outgoing", json=_body(donationDetails=[{"newQuantity": 1}]))
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_incoming_transactions_and_delete(client, seeded, session_factory):
    incoming = client.post(
        "/donation/v1/incoming",
        json={"userId": seeded["user_id"], "products": [{"name": "Crib", "quantity": 2}]},
    )
    assert incoming.status_code == 200
    donation_id = incoming.json()["createdDonation"]["id"]
    assert _stock(session_factory, seeded["crib_id"]) == 7

    page = client.get("/donation/v1/transactions", params={"page": 1, "pageSize": 5}).json()
    assert page["totalNumber"] == 1
    assert page["donations"][0]["total"] == pytest.approx(200.0)

    deleted = client.delete(f"/donation/v1/{donation_id}")
    assert deleted.json() == {"status": "deleted"}
    assert _stock(session_factory, seeded["crib_id"]) == 5
    assert client.delete(f"/donation/v1/{donation_id}").status_code == 404


def test_donation_listing_filters_and_sorts(client, seeded):
    client.post("/donation/v1/outgoing", json=_body())
    client.post("/donation/v1/incoming", json={"userId": seeded["user_id"], "products": [{"name": "Crib", "quantity": 2}]})

    outgoing = client.get("/donation/v1", params={"direction": "outgoing"}).json()
    assert outgoing["totalNumber"] == 1
    assert [row["direction"] for row in outgoing["donations"]] == ["outgoing"]

    first_id = outgoing["donations"][0]["id"]
    by_id = client.get("/donation/v1/transactions", params={"id": first_id}).json()
    assert [row["id"] for row in by_id["donations"]] == [first_id]

    ordered = client.get("/donation/v1", params={"sort": "id", "order": "asc"}).json()
    ids = [row["id"] for row in ordered["donations"]]
    assert ids == sorted(ids)
    assert ordered["totalNumber"] == 2

    assert client.get("/donation/v1", params={"sort": "secret"}).status_code == 400
    assert client.get("/donation/v1", params={"direction": "sideways"}).status_code == 422


def test_items_listing_filters_by_category(client, seeded):
    rows = client.get("/items/v1", params={"category": "Furniture"}).json()
    assert [row["name"] for row in rows] == ["Crib"]
    assert rows[0]["quantityNew"] == 5
    assert client.get("/items/v1", params={"category": "Toys"}).json() == []


def test_health(client):
    assert client.get("/health").json() == {"ok": True}
