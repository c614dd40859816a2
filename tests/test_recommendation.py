"""
Tests for /api/recommendation.
"""

from tests.conftest import auth, image_bytes


def section(**overrides) -> dict:
    data = {
        "headerTitle": "Recommended for you",
        "headerSubtitle": "Picked by our staff",
        "mainTitle": "Pod Systems",
        "mainSubtitle": "Small and refillable",
        "buttonLink": "/products?category=POD",
    }
    data.update(overrides)
    return data


def save(client, **overrides) -> dict:
    response = client.post("/api/recommendation", json=section(**overrides), headers=auth("admin"))
    assert response.status_code == 200, response.json()
    return response.json()["data"]


def upload(client, image_type: str, index: int | None = None):
    data = {"imageType": image_type}
    if index is not None:
        data["subImageIndex"] = str(index)
    return client.put(
        "/api/recommendation",
        data=data,
        files={"image": ("pod.png", image_bytes(), "image/png")},
        headers=auth("admin"),
    )


class TestRecommendationSection:
    """Tests for reading and saving the section."""

    def test_missing_section(self, client):
        """Test the 404 before anything is saved."""
        response = client.get("/api/recommendation")

        assert response.status_code == 404
        assert response.json()["error"] == "Recommendation section not found"

    def test_save_defaults(self, client):
        """Test the stored texts and default button."""
        data = save(client)

        assert data["headerTitle"] == "Recommended for you"
        assert data["buttonText"] == "Explore Now"
        assert data["isActive"] is True
        assert data["subImages"] == []

    def test_public_view(self, client):
        """Test that visitors do not see storage ids or editors."""
        save(client)

        data = client.get("/api/recommendation").json()["data"]

        assert data["mainTitle"] == "Pod Systems"
        assert "mainImagePublicId" not in data
        assert "updatedBy" not in data

    def test_save_keeps_images(self, client, db):
        """Test that saving texts leaves uploaded images in place."""
        save(client)
        upload(client, "main")

        data = save(client, mainTitle="Starter Kits")

        assert data["mainTitle"] == "Starter Kits"
        assert data["mainImage"].startswith("https://media.test/vwv/recommendation/main_")
        assert db["settings"].count_documents({"type": "recommendation"}) == 1

    def test_save_validation(self, client):
        """Test required titles and the link format."""
        short = client.post("/api/recommendation", json=section(mainTitle="P"), headers=auth("admin"))
        bad_link = client.post(
            "/api/recommendation", json=section(buttonLink="ftp://files.example.com"), headers=auth("admin")
        )

        assert short.status_code == 400
        assert bad_link.status_code == 400

    def test_admin_only(self, client):
        """Test that managers cannot edit the section."""
        response = client.post("/api/recommendation", json=section(), headers=auth("manager"))

        assert response.status_code == 403

    def test_toggle_hides_section(self, client):
        """Test that an inactive section is only visible to admins."""
        save(client)

        toggled = client.delete("/api/recommendation", params={"action": "toggle"}, headers=auth("admin"))

        assert toggled.json()["isActive"] is False
        assert client.get("/api/recommendation").status_code == 404
        admin = client.get("/api/recommendation", params={"includeInactive": "true"}, headers=auth("admin"))
        assert admin.status_code == 200


class TestRecommendationImages:
    """Tests for section images."""

    def test_upload_needs_a_section(self, client, media):
        """Test the 404 before the section exists."""
        response = upload(client, "main")

        assert response.status_code == 404
        assert media.assets == {}

    def test_upload_main_image(self, client, db, media):
        """Test storing the main image."""
        save(client)

        response = upload(client, "main")

        assert response.status_code == 200
        body = response.json()["data"]
        assert body["imageType"] == "main"
        assert body["publicId"] in media.assets
        stored = db["settings"].find_one({"type": "recommendation"})
        assert stored["mainImagePublicId"] == body["publicId"]

    def test_sub_images_fill_in_order(self, client, db):
        """Test slot ordering for the small images."""
        save(client)

        skipped = upload(client, "sub", 1)
        first = upload(client, "sub", 0)
        second = upload(client, "sub", 1)

        assert skipped.status_code == 400
        assert first.status_code == 200
        assert second.status_code == 200
        subs = db["settings"].find_one({"type": "recommendation"})["subImages"]
        assert [s["order"] for s in subs] == [0, 1]
        assert subs[1]["publicId"].startswith("vwv/recommendation/sub1_")

    def test_invalid_image_type(self, client):
        """Test the main/background/sub whitelist."""
        save(client)

        assert upload(client, "icon").status_code == 400
        assert upload(client, "sub").status_code == 400

    def test_delete_sub_image_reorders(self, client, db, media):
        """Test that removing a small image closes the gap."""
        save(client)
        upload(client, "sub", 0)
        upload(client, "sub", 1)
        subs = db["settings"].find_one({"type": "recommendation"})["subImages"]

        response = client.delete(
            "/api/recommendation",
            params={"action": "deleteImage", "imageType": "sub", "subImageIndex": "0"},
            headers=auth("admin"),
        )

        assert response.status_code == 200
        remaining = db["settings"].find_one({"type": "recommendation"})["subImages"]
        assert [(s["publicId"], s["order"]) for s in remaining] == [(subs[1]["publicId"], 0)]
        assert media.deleted == [subs[0]["publicId"]]

    def test_delete_missing_image(self, client):
        """Test the 404 for an empty slot."""
        save(client)

        response = client.delete(
            "/api/recommendation",
            params={"action": "deleteImage", "imageType": "background"},
            headers=auth("admin"),
        )

        assert response.status_code == 404

    def test_unknown_action(self, client):
        """Test the toggle/deleteImage whitelist."""
        save(client)

        response = client.delete("/api/recommendation", params={"action": "archive"}, headers=auth("admin"))

        assert response.status_code == 400
