"""
Tests for the application shell: error envelope and health check.
"""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from storefront.api import create_app
from storefront.api.deps import get_app_settings, get_counter_store, get_db, get_media
from storefront.db.repositories import ProductRepository
from tests.conftest import auth


class TestErrorEnvelope:
    """Tests for error responses."""

    def test_api_error_shape(self, client):
        """Test the error, timestamp and extra keys."""
        response = client.get("/api/products", params={"branch": "ghatpar"}, headers=auth("moderator", branch="mirpur"))

        body = response.json()
        assert response.status_code == 403
        assert set(body) == {"error", "timestamp", "allowedBranch"}

    def test_request_validation_is_400(self, client):
        """Test that framework validation errors use the envelope with 400."""
        response = client.get("/api/products", params={"limit": "many"})

        assert response.status_code == 400
        assert "limit" in response.json()["error"]

    def test_non_object_body(self, client):
        """Test a JSON body that is not an object."""
        response = client.post("/api/products", json=[1, 2], headers=auth("admin"))

        assert response.status_code == 400

    def test_unexpected_error_in_dev(self, client, monkeypatch):
        """Test that dev responses name the failure."""
        def boom(*args, **kwargs):
            raise RuntimeError("cursor exploded")

        monkeypatch.setattr(ProductRepository, "find", boom)

        response = client.get("/api/products")

        assert response.status_code == 500
        assert response.json()["error"] == "cursor exploded"
        assert response.json()["context"] == "RuntimeError"

    def test_unexpected_error_in_prod(self, settings, db, media, counters, monkeypatch):
        """Test that production responses hide internal details."""
        settings.environment = "prod"
        app = create_app(settings)
        app.dependency_overrides[get_app_settings] = lambda: settings
        app.dependency_overrides[get_db] = lambda: db
        app.dependency_overrides[get_media] = lambda: media
        app.dependency_overrides[get_counter_store] = lambda: counters

        def boom(*args, **kwargs):
            raise RuntimeError("cursor exploded")

        monkeypatch.setattr(ProductRepository, "find", boom)

        response = TestClient(app, raise_server_exceptions=False).get("/api/products")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert "context" not in response.json()


class TestHealth:
    """Tests for the database check."""

    def test_connected(self, app):
        """Test a successful ping."""
        fake_db = MagicMock()
        fake_db.command.return_value = {"ok": 1}
        app.dependency_overrides[get_db] = lambda: fake_db

        response = TestClient(app).get("/api/test-db")

        assert response.status_code == 200
        assert response.json() == {"message": "Connected!"}
        fake_db.command.assert_called_once_with("ping")

    def test_unreachable(self, app):
        """Test the 500 when the database cannot be reached."""
        fake_db = MagicMock()
        fake_db.command.side_effect = ServerSelectionTimeoutError("no servers")
        app.dependency_overrides[get_db] = lambda: fake_db

        response = TestClient(app, raise_server_exceptions=False).get("/api/test-db")

        assert response.status_code == 500
        assert response.json()["error"] == "Database connection failed"
