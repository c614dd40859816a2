"""
Shared fixtures: in-memory database, fake media store, signed tokens.
"""

from io import BytesIO
from typing import Any

import mongomock
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from PIL import Image

from storefront.api import create_app
from storefront.api.deps import get_app_settings, get_counter_store, get_db, get_media
from storefront.auth import InMemoryCounterStore, Principal
from storefront.config import Settings
from storefront.errors import MediaStoreError
from storefront.models import ProductDoc, Role
from storefront.storage import StoredAsset

JWT_SECRET = "test-secret"


class FakeMediaStore:
    """Media store keeping assets in a dict."""

    def __init__(self):
        self.assets: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_uploads = False
        self.fail_deletes = False

    def upload(self, public_id: str, data: bytes, content_type: str) -> StoredAsset:
        if self.fail_uploads:
            raise MediaStoreError("upload refused")
        self.assets[public_id] = data
        return StoredAsset(url=f"https://media.test/{public_id}", public_id=public_id)

    def delete(self, public_id: str) -> bool:
        if self.fail_deletes:
            raise MediaStoreError("delete refused")
        self.deleted.append(public_id)
        return self.assets.pop(public_id, None) is not None


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="dev",
        mongodb_uri="mongodb://localhost:27017",
        mongodb_database="VWV_test",
        jwt_secret=JWT_SECRET,
        log_format="text",
        log_level="WARNING",
    )


@pytest.fixture
def db():
    return mongomock.MongoClient(tz_aware=True)["VWV_test"]


@pytest.fixture
def media() -> FakeMediaStore:
    return FakeMediaStore()


@pytest.fixture
def counters() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def app(settings, db, media, counters):
    app = create_app(settings)
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_media] = lambda: media
    app.dependency_overrides[get_counter_store] = lambda: counters
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


def make_token(role: str = "user", secret: str = JWT_SECRET, **claims: Any) -> str:
    payload = {"sub": f"{role}-1", "role": role, "email": f"{role}@example.com", **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


def auth(role: str = "user", **claims: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(role, **claims)}"}


def principal(role: Role, branch: str | None = None, email: str | None = None) -> Principal:
    return Principal(
        role=role,
        branch=branch,
        user_id=f"{role.value}-1",
        email=email or f"{role.value}@example.com",
    )


def image_bytes(fmt: str = "PNG", size: tuple[int, int] = (40, 30)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


def insert_product(db, **fields: Any) -> str:
    """Store a product directly and return its id."""
    data = {
        "name": "Test Juice",
        "price": 1200,
        "category": "E-LIQUID",
        "subcategory": "Fruits",
        "stock": {"ghatpar_stock": 5, "mirpur_stock": 0},
        **fields,
    }
    result = db["products"].insert_one(ProductDoc(**data).to_mongo())
    return str(result.inserted_id)
