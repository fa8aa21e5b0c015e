import mongomock
import pytest

from app import create_app

OWNER_EMAIL = "owner@x.com"
REVIEWER_EMAIL = "reviewer@x.com"

TOKENS = {
    "owner-token": {"uid": "owner-uid", "email": OWNER_EMAIL},
    "reviewer-token": {"uid": "reviewer-uid", "email": REVIEWER_EMAIL},
}


def fake_verify_token(token):
    # Stand-in for firebase_admin.auth.verify_id_token
    try:
        return TOKENS[token]
    except KeyError:
        raise ValueError("Token expired")


@pytest.fixture
def db():
    return mongomock.MongoClient()["HomeNest"]


@pytest.fixture
def client(db):
    app = create_app(db, verify_token=fake_verify_token)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def owner_headers():
    return {"Authorization": "Bearer owner-token"}


@pytest.fixture
def reviewer_headers():
    return {"Authorization": "Bearer reviewer-token"}
