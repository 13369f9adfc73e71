"""
Pytest fixtures shared across the test modules

mongomock stands in for MongoDB and FakeImageHost for Cloudinary; both are
wired into the app through dependency overrides.
"""
from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from database import get_db, sanitize
from main import app
from schemas import Product
from uploads import get_image_host

BROKEN_IMAGE = b"broken"


class FakeImageHost:
    """Accepts any bytes except BROKEN_IMAGE and hands out sequential URLs."""

    def __init__(self):
        self.uploaded = []

    def upload(self, data):
        if not data or data == BROKEN_IMAGE:
            return None
        self.uploaded.append(data)
        return f"https://images.test/{len(self.uploaded)}.png"


@pytest.fixture
def db():
    return mongomock.MongoClient()["shopsphere_test"]


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def client(db, image_host):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_image_host] = lambda: image_host
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, username, role="customer"):
    doc = {
        "username": username,
        "email": f"{username}@example.com",
        "password_hash": "x",
        "role": role,
    }
    res = db["user"].insert_one(doc)
    doc["_id"] = res.inserted_id
    return sanitize(doc)


def headers_for(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user['id']})}"}


@pytest.fixture
def distributor(db):
    return make_user(db, "distributor1", role="distributor")


@pytest.fixture
def customer(db):
    return make_user(db, "shopper1")


@pytest.fixture
def make_product(db):
    """Insert a product straight into the store, creating its category by name."""
    counter = {"n": 0}

    def _make(name="Runner", category="Shoes", price=25.0, distributor="d1", **extra):
        counter["n"] += 1
        cat = db["category"].find_one({"name": category})
        cat_id = cat["_id"] if cat else db["category"].insert_one({"name": category}).inserted_id
        doc = Product(
            name=name,
            brand="Acme",
            description=f"{name} description",
            price=price,
            quantity=10,
            category=str(cat_id),
            distributor=distributor,
            image=f"https://images.test/seed-{counter['n']}.png",
            createdAt=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(days=counter["n"]),
        ).model_dump()
        doc.update(extra)
        doc["_id"] = db["product"].insert_one(doc).inserted_id
        return doc

    return _make
