from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from app import create_app
from conftest import OWNER_EMAIL, fake_verify_token

MISSING_ID = "0123456789abcdef01234567"


def _create(client, headers, body):
    resp = client.post("/properties", json=body, headers=headers)
    assert resp.status_code == 201
    return resp.get_json()["insertedId"]


def test_index(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == "HomeNest API Server Running!"


def test_create_then_get_property(client, owner_headers):
    body = {"property_name": "Villa", "posted_by": {"email": "a@x.com"}}
    inserted_id = _create(client, owner_headers, body)
    assert ObjectId.is_valid(inserted_id)

    resp = client.get(f"/properties/{inserted_id}")
    assert resp.status_code == 200
    doc = resp.get_json()
    assert doc["_id"] == inserted_id
    assert doc["property_name"] == "Villa"
    assert doc["posted_by"] == {"email": "a@x.com"}


def test_create_property_message(client, owner_headers):
    resp = client.post("/properties", json={"property_name": "Loft"}, headers=owner_headers)
    assert resp.get_json()["message"] == "Property created successfully"


def test_list_properties(client, owner_headers):
    _create(client, owner_headers, {"property_name": "A"})
    _create(client, owner_headers, {"property_name": "B"})

    resp = client.get("/properties")
    assert resp.status_code == 200
    assert sorted(p["property_name"] for p in resp.get_json()) == ["A", "B"]


def test_list_properties_empty(client):
    resp = client.get("/properties")
    assert resp.status_code == 200
    assert resp.get_json() == []


def test_my_properties_filters_by_owner(client, owner_headers):
    _create(client, owner_headers, {"property_name": "Mine", "posted_by": {"email": OWNER_EMAIL}})
    _create(client, owner_headers, {"property_name": "Other", "posted_by": {"email": "b@x.com"}})

    resp = client.get(f"/my-properties/{OWNER_EMAIL}", headers=owner_headers)
    assert resp.status_code == 200
    assert [p["property_name"] for p in resp.get_json()] == ["Mine"]


def test_get_unknown_property(client):
    resp = client.get(f"/properties/{MISSING_ID}")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Property not found"


def test_update_property_merges_fields(client, owner_headers):
    inserted_id = _create(client, owner_headers, {"property_name": "Villa", "price": 100})

    resp = client.put(
        f"/properties/{inserted_id}",
        json={"_id": MISSING_ID, "price": 250},
        headers=owner_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Property updated successfully"

    doc = client.get(f"/properties/{inserted_id}").get_json()
    assert doc["_id"] == inserted_id
    assert doc["property_name"] == "Villa"
    assert doc["price"] == 250


def test_update_unknown_property(client, owner_headers):
    resp = client.put(f"/properties/{MISSING_ID}", json={"price": 1}, headers=owner_headers)
    assert resp.status_code == 404


def test_delete_property_twice(client, owner_headers):
    inserted_id = _create(client, owner_headers, {"property_name": "Villa"})

    first = client.delete(f"/properties/{inserted_id}", headers=owner_headers)
    assert first.status_code == 200
    assert first.get_json()["message"] == "Property deleted successfully"

    second = client.delete(f"/properties/{inserted_id}", headers=owner_headers)
    assert second.status_code == 404
    assert client.get(f"/properties/{inserted_id}").status_code == 404


def test_delete_property_keeps_reviews(client, db, owner_headers):
    inserted_id = _create(client, owner_headers, {"property_name": "Villa"})
    db.reviews.insert_one({"property_id": inserted_id, "rating": 5})

    client.delete(f"/properties/{inserted_id}", headers=owner_headers)
    assert db.reviews.count_documents({"property_id": inserted_id}) == 1


@pytest.mark.parametrize("bad_id", ["123", "not-an-object-id", "zzzzzzzzzzzzzzzzzzzzzzzz", "0123456789abcdef012345678"])
@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_malformed_property_id_rejected_before_store(owner_headers, method, bad_id):
    store = MagicMock()
    client = create_app(store, verify_token=fake_verify_token).test_client()

    resp = getattr(client, method)(f"/properties/{bad_id}", json={}, headers=owner_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Invalid property ID"
    assert store.mock_calls == []


def test_store_failure_is_reported(owner_headers):
    store = MagicMock()
    store.properties.find.side_effect = PyMongoError("connection refused")
    client = create_app(store, verify_token=fake_verify_token).test_client()

    resp = client.get("/properties")
    assert resp.status_code == 500
    assert resp.get_json() == {
        "message": "Failed to fetch properties",
        "error": "connection refused",
    }


def test_health_reports_store_status():
    store = MagicMock()
    client = create_app(store, verify_token=fake_verify_token).test_client()

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["mongodb_connected"] is True

    store.command.side_effect = PyMongoError("timed out")
    resp = client.get("/health")
    assert resp.status_code == 503
    assert resp.get_json()["status"] == "degraded"


def test_unknown_endpoint(client):
    resp = client.get("/nowhere")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Endpoint not found"


def test_method_not_allowed(client):
    resp = client.patch("/properties")
    assert resp.status_code == 405


def test_nested_object_ids_render_as_strings(client, db):
    agent_id = ObjectId()
    inserted_id = str(db.properties.insert_one({
        "property_name": "Villa",
        "posted_by": {"email": "a@x.com", "agent_id": agent_id},
        "gallery": [{"image_id": agent_id}],
    }).inserted_id)

    resp = client.get(f"/properties/{inserted_id}")
    assert resp.status_code == 200
    doc = resp.get_json()
    assert doc["posted_by"]["agent_id"] == str(agent_id)
    assert doc["gallery"] == [{"image_id": str(agent_id)}]
    assert client.get("/properties").get_json()[0]["posted_by"]["agent_id"] == str(agent_id)
