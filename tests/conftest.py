import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import create_token, custom_user_id
from database import get_db
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient().db


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(email, is_admin=False, **extra):
        user = {
            "_id": ObjectId(),
            "email": email,
            "password_hash": "",
            "is_admin": is_admin,
            "email_verified": True,
            "custom_id": custom_user_id(email),
            "favorites": [],
            "helpful_reviews": [],
            **extra,
        }
        db["user"].insert_one(user)
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", is_admin=True, display_name="Store Admin")


@pytest.fixture
def shopper(make_user):
    return make_user("kari.nordmann@example.com", display_name="Kari")


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_token(admin)}"}


@pytest.fixture
def shopper_headers(shopper):
    return {"Authorization": f"Bearer {create_token(shopper)}"}
