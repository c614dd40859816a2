"""
Tests for /api/products.
"""

from bson import ObjectId
from pymongo.errors import PyMongoError

from storefront.db.repositories import ProductRepository
from tests.conftest import auth, image_bytes, insert_product


def _image(n: int) -> dict:
    return {"url": f"https://media.test/p/{n}.webp", "publicId": f"vwv_vape_products/p_{n}.webp", "alt": f"img {n}"}


class TestPublicVisibility:
    """Tests for what unauthenticated callers can see."""

    def test_inactive_products_never_listed(self, client, db):
        """Test that draft and inactive products are hidden from the public list."""
        active_id = insert_product(db, name="Visible")
        insert_product(db, name="Draft", status="draft")
        insert_product(db, name="Inactive", status="inactive")

        response = client.get("/api/products")

        assert response.status_code == 200
        ids = [p["_id"] for p in response.json()["products"]]
        assert ids == [active_id]

    def test_status_filter_ignored_for_public(self, client, db):
        """Test that asking for drafts still returns only active products."""
        insert_product(db, name="Draft", status="draft")

        response = client.get("/api/products", params={"status": "draft"})

        assert response.json()["products"] == []

    def test_inactive_product_lookup_is_404(self, client, db):
        """Test fetching an inactive product by id as public."""
        draft_id = insert_product(db, status="draft")

        response = client.get("/api/products", params={"id": draft_id})

        assert response.status_code == 404
        assert response.json()["error"] == "Product not found"

    def test_inactive_barcode_lookup_returns_nothing(self, client, db):
        """Test that barcode lookup follows status eligibility."""
        insert_product(db, barcode="DRAFT-1", status="draft")

        response = client.get("/api/products", params={"barcode": "DRAFT-1"})

        assert response.status_code == 200
        assert response.json()["products"] == []

    def test_private_fields_stripped(self, client, db):
        """Test that stock, barcode and status never reach public callers."""
        insert_product(db, barcode="8901234567890", created_by="admin-1")

        product = client.get("/api/products").json()["products"][0]

        for key in ("stock", "barcode", "status", "createdBy", "updatedBy"):
            assert key not in product
        assert product["name"] == "Test Juice"

    def test_user_role_sees_same_shape_as_public(self, client, db):
        """Test that signed-in customers get the public view."""
        insert_product(db, barcode="8901234567890")
        insert_product(db, status="draft")

        products = client.get("/api/products", headers=auth("user")).json()["products"]

        assert len(products) == 1
        assert "stock" not in products[0]


class TestStaffVisibility:
    """Tests for moderator, manager and admin views."""

    def test_moderator_sees_only_own_branch_stock(self, client, db):
        """Test that the stock map collapses to the moderator's branch."""
        insert_product(db, stock={"ghatpar_stock": 5, "mirpur_stock": 9, "uttara_stock": 2})

        headers = auth("moderator", branch="mirpur")
        product = client.get("/api/products", headers=headers).json()["products"][0]

        assert product["stock"] == {"mirpur_stock": 9}
        assert "createdBy" not in product
        assert "barcode" in product

    def test_moderator_missing_branch_entry_is_zero(self, client, db):
        """Test a product without stock for the moderator's branch."""
        insert_product(db, stock={"ghatpar_stock": 5})

        headers = auth("moderator", branch="mirpur")
        product = client.get("/api/products", headers=headers).json()["products"][0]

        assert product["stock"] == {"mirpur_stock": 0}

    def test_moderator_other_branch_forbidden(self, client, db):
        """Test that filtering on another branch is rejected."""
        response = client.get(
            "/api/products",
            params={"branch": "ghatpar"},
            headers=auth("moderator", branch="mirpur"),
        )

        assert response.status_code == 403
        assert response.json()["allowedBranch"] == "mirpur"

    def test_moderator_without_branch_forbidden(self, client, db):
        """Test that a moderator with no assigned branch cannot read products."""
        response = client.get("/api/products", headers=auth("moderator"))

        assert response.status_code == 403

    def test_admin_sees_everything(self, client, db):
        """Test that admins see every status and the full stock map."""
        insert_product(db, status="draft", created_by="admin-1")

        product = client.get("/api/products", headers=auth("admin")).json()["products"][0]

        assert product["status"] == "draft"
        assert product["stock"] == {"ghatpar_stock": 5, "mirpur_stock": 0}
        assert product["createdBy"] == "admin-1"

    def test_staff_status_filter(self, client, db):
        """Test an explicit status filter for staff."""
        insert_product(db, name="A")
        insert_product(db, name="B", status="draft")

        response = client.get("/api/products", params={"status": "draft"}, headers=auth("manager"))

        assert [p["name"] for p in response.json()["products"]] == ["B"]

    def test_invalid_status_filter(self, client):
        """Test that an unknown status is a 400 for staff."""
        response = client.get("/api/products", params={"status": "sold"}, headers=auth("admin"))

        assert response.status_code == 400


class TestReadPath:
    """Tests for filters, lookups and pagination."""

    def test_invalid_token_rejected(self, client):
        """Test that a bad token is a 401 even on reads."""
        response = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401
        assert "timestamp" in response.json()

    def test_invalid_id_is_400(self, client):
        """Test that a malformed id is rejected before lookup."""
        response = client.get("/api/products", params={"id": "not-an-id"})

        assert response.status_code == 400

    def test_unknown_id_is_404(self, client):
        """Test a well-formed id with no product."""
        response = client.get("/api/products", params={"id": str(ObjectId())})

        assert response.status_code == 404

    def test_category_match_ignores_case(self, client, db):
        """Test case-insensitive exact category matching."""
        insert_product(db, name="Juice", category="E-LIQUID")
        insert_product(db, name="Tank", category="TANKS", subcategory="Rta")

        products = client.get("/api/products", params={"category": "e-liquid"}).json()["products"]

        assert [p["name"] for p in products] == ["Juice"]

    def test_category_is_not_a_prefix_match(self, client, db):
        """Test that the category filter matches whole values only."""
        insert_product(db, category="E-LIQUID")

        products = client.get("/api/products", params={"category": "E-LIQ"}).json()["products"]

        assert products == []

    def test_search_matches_several_fields(self, client, db):
        """Test search across name and brand."""
        insert_product(db, name="Mango Ice")
        insert_product(db, name="Other", brand="Mango Labs")
        insert_product(db, name="Unrelated")

        products = client.get("/api/products", params={"search": "mango"}).json()["products"]

        assert sorted(p["name"] for p in products) == ["Mango Ice", "Other"]

    def test_search_is_literal(self, client, db):
        """Test that regex metacharacters in search are escaped."""
        insert_product(db, name="Anything")

        products = client.get("/api/products", params={"search": ".*"}).json()["products"]

        assert products == []

    def test_search_too_long(self, client):
        """Test the search length limit."""
        response = client.get("/api/products", params={"search": "x" * 101})

        assert response.status_code == 400

    def test_limit_bounds(self, client):
        """Test that limit outside 1-100 is rejected."""
        assert client.get("/api/products", params={"limit": 0}).status_code == 400
        assert client.get("/api/products", params={"limit": 101}).status_code == 400

    def test_in_stock_for_branch(self, client, db):
        """Test the inStock filter with a branch."""
        insert_product(db, name="Ghatpar only", stock={"ghatpar_stock": 3, "mirpur_stock": 0})
        insert_product(db, name="Mirpur only", stock={"ghatpar_stock": 0, "mirpur_stock": 4})

        products = client.get(
            "/api/products",
            params={"inStock": "true", "branch": "mirpur"},
            headers=auth("admin"),
        ).json()["products"]

        assert [p["name"] for p in products] == ["Mirpur only"]

    def test_in_stock_any_branch(self, client, db):
        """Test the inStock filter across every known branch."""
        insert_product(db, name="Stocked", stock={"ghatpar_stock": 0, "mirpur_stock": 4})
        insert_product(db, name="Empty", stock={"ghatpar_stock": 0, "mirpur_stock": 0})

        products = client.get("/api/products", params={"inStock": "true"}).json()["products"]

        assert [p["name"] for p in products] == ["Stocked"]

    def test_pagination_block(self, client, db):
        """Test pagination metadata."""
        for n in range(5):
            insert_product(db, name=f"P{n}")

        body = client.get("/api/products", params={"limit": 2, "page": 2}).json()

        assert len(body["products"]) == 2
        assert body["pagination"] == {
            "currentPage": 2,
            "totalPages": 3,
            "totalProducts": 5,
            "hasNextPage": True,
            "hasPrevPage": True,
        }

    def test_barcode_lookup_falls_back_to_case_insensitive(self, client, db):
        """Test barcode lookup ignoring case when there is no exact match."""
        product_id = insert_product(db, barcode="AB-12")

        body = client.get("/api/products", params={"barcode": " ab-12 "}, headers=auth("admin")).json()

        assert [p["_id"] for p in body["products"]] == [product_id]
        assert body["pagination"]["totalProducts"] == 1

    def test_categories_only(self, client):
        """Test the merged taxonomy response."""
        categories = client.get("/api/products", params={"getCategoriesOnly": "true"}).json()["categories"]

        assert "E-LIQUID" in categories
        assert "Rta" in categories["TANKS"]

    def test_branches_only_default(self, client):
        """Test the branch fallback when no product has stock keys."""
        body = client.get("/api/products", params={"getBranchesOnly": "true"}).json()

        assert body == {"branches": ["ghatpar", "mirpur"]}

    def test_branches_only_from_stock(self, client, db):
        """Test branch discovery from active products only."""
        insert_product(db, stock={"uttara_stock": 1})
        insert_product(db, status="draft", stock={"hidden_stock": 1})

        body = client.get("/api/products", params={"getBranchesOnly": "true"}).json()

        assert body == {"branches": ["uttara"]}


class TestCreateAndUpdate:
    """Tests for product writes."""

    def _create(self, client, role="admin", **fields):
        body = {"name": "New Juice", "price": 950, "category": "E-LIQUID", "subcategory": "Fruits", **fields}
        return client.post("/api/products", json=body, headers=auth(role))

    def test_create_requires_token(self, client):
        """Test that anonymous writes are a 401."""
        response = client.post("/api/products", json={"name": "x", "price": 1, "category": "E-LIQUID"})

        assert response.status_code == 401

    def test_create_forbidden_for_moderator(self, client):
        """Test that moderators cannot create products."""
        assert self._create(client, role="moderator", branch="mirpur").status_code == 403

    def test_create_seeds_stock_for_known_branches(self, client):
        """Test the zero stock entry per registered branch."""
        response = self._create(client, role="manager")

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Product created successfully"
        assert body["product"]["stock"] == {"ghatpar_stock": 0, "mirpur_stock": 0}
        assert body["product"]["createdBy"] == "manager-1"

    def test_stock_round_trip(self, client):
        """Test that supplied stock is read back exactly."""
        created = self._create(client, stock={"mirpur_stock": 5}).json()["product"]

        product = client.get("/api/products", params={"id": created["_id"]}, headers=auth("admin")).json()

        assert product["stock"]["mirpur_stock"] == 5
        assert product["stock"]["ghatpar_stock"] == 0

    def test_create_with_explicit_branches(self, client):
        """Test seeding stock from the branches in the body."""
        product = self._create(client, branches=["uttara"]).json()["product"]

        assert product["stock"] == {"uttara_stock": 0}

    def test_create_rejects_bad_branch_names(self, client, db):
        """Test that branch names which cannot form a stock key are a 400."""
        for branches in (["main st"], ["a.b"], [""], "mirpur"):
            response = self._create(client, branches=branches)

            assert response.status_code == 400, branches
        assert db["products"].count_documents({}) == 0

    def test_create_normalizes_branch_names(self, client):
        """Test lowercasing and de-duplication of branch names."""
        product = self._create(client, branches=["Uttara", "uttara", " Banani "]).json()["product"]

        assert product["stock"] == {"uttara_stock": 0, "banani_stock": 0}

    def test_create_rejects_bad_stock_key(self, client):
        """Test stock key validation."""
        response = self._create(client, stock={"mirpur": 5})

        assert response.status_code == 400

    def test_create_rejects_stock_out_of_range(self, client):
        """Test stock value bounds."""
        assert self._create(client, stock={"mirpur_stock": 100000}).status_code == 400
        assert self._create(client, stock={"mirpur_stock": -1}).status_code == 400

    def test_create_rejects_unknown_category(self, client):
        """Test taxonomy validation on create."""
        response = self._create(client, category="NOT-A-CATEGORY")

        assert response.status_code == 400

    def test_create_rejects_price_out_of_range(self, client):
        """Test the price ceiling."""
        assert self._create(client, price=1_000_001).status_code == 400

    def test_create_drops_blank_tags(self, client):
        """Test tag trimming."""
        product = self._create(client, tags="mango, ,ice").json()["product"]

        assert product["tags"] == ["mango", "ice"]

    def test_duplicate_barcode_on_create(self, client, db):
        """Test that an existing barcode blocks a create and nothing is inserted."""
        insert_product(db, barcode="8901234567890")

        response = self._create(client, barcode="8901234567890")

        assert response.status_code == 400
        assert db["products"].count_documents({}) == 1

    def test_duplicate_barcode_on_update(self, client, db):
        """Test that taking another product's barcode fails and changes nothing."""
        insert_product(db, name="Owner", barcode="OWNED-1")
        target_id = insert_product(db, name="Target", barcode="MINE-1")

        response = client.post(
            "/api/products",
            json={
                "action": "update",
                "id": target_id,
                "name": "Renamed",
                "price": 1200,
                "category": "E-LIQUID",
                "subcategory": "Fruits",
                "barcode": "OWNED-1",
            },
            headers=auth("admin"),
        )

        assert response.status_code == 400
        stored = db["products"].find_one({"_id": ObjectId(target_id)})
        assert stored["barcode"] == "MINE-1"
        assert stored["name"] == "Target"

    def test_update_keeps_own_barcode(self, client, db):
        """Test that a product may keep its own barcode on update."""
        product_id = insert_product(db, barcode="MINE-1")

        response = client.post(
            "/api/products",
            json={
                "action": "update",
                "id": product_id,
                "name": "Renamed",
                "price": 10,
                "category": "E-LIQUID",
                "subcategory": "Fruits",
                "barcode": "MINE-1",
            },
            headers=auth("manager"),
        )

        assert response.status_code == 200
        assert response.json()["product"]["name"] == "Renamed"
        assert response.json()["product"]["updatedBy"] == "manager-1"

    def test_update_image_order_drops_unsaved_entries(self, client, db):
        """Test that entries without a storage id are dropped and order is kept."""
        product_id = insert_product(db, images=[_image(1), _image(2), _image(3)])
        order = [
            {"url": _image(3)["url"], "publicId": _image(3)["publicId"]},
            {"url": "blob:local-preview", "publicId": None},
            {"url": _image(1)["url"], "publicId": _image(1)["publicId"], "alt": "front"},
        ]

        response = client.post(
            "/api/products",
            json={
                "action": "update",
                "id": product_id,
                "name": "Test Juice",
                "price": 1200,
                "category": "E-LIQUID",
                "subcategory": "Fruits",
                "imageOrder": order,
            },
            headers=auth("admin"),
        )

        assert response.status_code == 200
        images = db["products"].find_one({"_id": ObjectId(product_id)})["images"]
        assert [img["publicId"] for img in images] == [_image(3)["publicId"], _image(1)["publicId"]]
        assert images[0]["alt"] == "Product image 1"
        assert images[1]["alt"] == "front"

    def test_update_unknown_product(self, client):
        """Test updating a product that does not exist."""
        response = client.post(
            "/api/products",
            json={"action": "update", "id": str(ObjectId()), "name": "x", "price": 1, "category": "E-LIQUID"},
            headers=auth("admin"),
        )

        assert response.status_code == 404

    def test_update_without_stock_keeps_stock(self, client, db):
        """Test that omitting stock leaves the stored map alone."""
        product_id = insert_product(db, stock={"ghatpar_stock": 7})

        client.post(
            "/api/products",
            json={
                "action": "update",
                "id": product_id,
                "name": "Test Juice",
                "price": 1,
                "category": "E-LIQUID",
                "subcategory": "Fruits",
            },
            headers=auth("admin"),
        )

        assert db["products"].find_one({"_id": ObjectId(product_id)})["stock"] == {"ghatpar_stock": 7}


    def _update(self, client, product_id, **fields):
        body = {
            "action": "update",
            "id": product_id,
            "name": "Test Juice",
            "price": 1200,
            "category": "E-LIQUID",
            "subcategory": "Fruits",
            **fields,
        }
        return client.post("/api/products", json=body, headers=auth("admin"))

    def test_update_without_attribute_maps_keeps_them(self, client, db):
        """Test that omitted specifications and branch specifications survive an update."""
        product_id = insert_product(
            db,
            specifications={"capacity": "60ml"},
            branch_specifications={"mirpur": {"shelf": "A3"}},
        )

        response = self._update(client, product_id, price=1300)

        assert response.status_code == 200
        stored = db["products"].find_one({"_id": ObjectId(product_id)})
        assert stored["price"] == 1300
        assert stored["specifications"] == {"capacity": "60ml"}
        assert stored["branchSpecifications"] == {"mirpur": {"shelf": "A3"}}

    def test_update_replaces_attribute_maps_when_sent(self, client, db):
        """Test that attribute maps in the body replace the stored ones."""
        product_id = insert_product(
            db,
            specifications={"capacity": "60ml"},
            branch_specifications={"mirpur": {"shelf": "A3"}},
        )

        self._update(client, product_id, specifications={}, branchSpecifications={"ghatpar": {"shelf": "B1"}})

        stored = db["products"].find_one({"_id": ObjectId(product_id)})
        assert stored["specifications"] == {}
        assert stored["branchSpecifications"] == {"ghatpar": {"shelf": "B1"}}

class TestTaxonomyActions:
    """Tests for taxonomy changes through the products endpoint."""

    def _action(self, client, action, role="admin", **fields):
        return client.post("/api/products", json={"action": action, **fields}, headers=auth(role))

    def test_taxonomy_admin_only(self, client):
        """Test that managers cannot change the taxonomy."""
        response = self._action(client, "add_category", role="manager", categoryName="PODS")

        assert response.status_code == 403

    def test_delete_referenced_category_reports_count(self, client, db):
        """Test the blocking product count on category delete."""
        insert_product(db, category="E-LIQUID")
        insert_product(db, category="e-liquid")

        response = self._action(client, "delete_category", categoryName="E-LIQUID")

        assert response.status_code == 400
        assert response.json()["productCount"] == 2

    def test_delete_referenced_subcategory_reports_count(self, client, db):
        """Test the blocking product count on subcategory delete."""
        insert_product(db, category="TANKS", subcategory="Rta")

        response = self._action(client, "delete_subcategory", categoryName="TANKS", subcategoryName="rta")

        assert response.status_code == 400
        assert response.json()["productCount"] == 1

    def test_delete_unused_subcategory(self, client):
        """Test that a deleted subcategory disappears from the category list."""
        response = self._action(client, "delete_subcategory", categoryName="TANKS", subcategoryName="Rda")
        assert response.status_code == 200

        categories = client.get("/api/products", params={"getCategoriesOnly": "true"}).json()["categories"]

        assert "Rda" not in categories["TANKS"]
        assert "Rta" in categories["TANKS"]

    def test_add_and_delete_custom_category(self, client):
        """Test the custom category lifecycle."""
        added = self._action(client, "add_category", categoryName="pods", subcategories=["Mini"])
        assert added.status_code == 200
        listed = client.get("/api/products", params={"getCategoriesOnly": "true"}).json()["categories"]
        assert listed["PODS"] == ["Mini"]

        deleted = self._action(client, "delete_category", categoryName="PODS")
        assert deleted.status_code == 200
        listed = client.get("/api/products", params={"getCategoriesOnly": "true"}).json()["categories"]
        assert "PODS" not in listed

    def test_unknown_action(self, client):
        """Test an action name that does not exist."""
        response = self._action(client, "rename_category")

        assert response.status_code == 400
        assert response.json()["error"] == "Unknown action: rename_category"


class TestImageUpload:
    """Tests for PUT /api/products."""

    def _files(self, *parts):
        return [("images", part) for part in parts]

    def test_partial_success(self, client, db, media):
        """Test that one bad file fails alone and the rest are attached."""
        product_id = insert_product(db)
        files = self._files(
            ("front.png", image_bytes(), "image/png"),
            ("notes.txt", b"not an image", "text/plain"),
            ("back.jpg", image_bytes("JPEG"), "image/jpeg"),
        )

        response = client.put(
            "/api/products",
            data={"productId": product_id},
            files=files,
            headers=auth("admin"),
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["uploadedImages"]) == 2
        assert body["uploadErrors"] == [{"fileName": "notes.txt", "error": "File must be an image"}]
        stored = db["products"].find_one({"_id": ObjectId(product_id)})
        assert len(stored["images"]) == 2
        assert len(media.assets) == 2
        assert all(pid.startswith(f"vwv_vape_products/vape_product_{product_id}_") for pid in media.assets)

    def test_all_files_fail(self, client, db):
        """Test the 400 when nothing could be uploaded."""
        product_id = insert_product(db)

        response = client.put(
            "/api/products",
            data={"productId": product_id},
            files=self._files(("a.txt", b"text", "text/plain")),
            headers=auth("admin"),
        )

        assert response.status_code == 400
        assert len(response.json()["errors"]) == 1

    def test_undecodable_image_fails_individually(self, client, db):
        """Test a file claiming to be an image that Pillow cannot read."""
        product_id = insert_product(db)

        response = client.put(
            "/api/products",
            data={"productId": product_id},
            files=self._files(
                ("broken.png", b"\x89PNG garbage", "image/png"),
                ("ok.png", image_bytes(), "image/png"),
            ),
            headers=auth("manager"),
        )

        body = response.json()
        assert response.status_code == 200
        assert len(body["uploadedImages"]) == 1
        assert body["uploadErrors"][0]["fileName"] == "broken.png"

    def test_product_image_cap(self, client, db, settings):
        """Test that files beyond the per-product cap fail individually."""
        settings.product_max_images = 2
        product_id = insert_product(db, images=[_image(1)])

        response = client.put(
            "/api/products",
            data={"productId": product_id},
            files=self._files(
                ("a.png", image_bytes(), "image/png"),
                ("b.png", image_bytes(), "image/png"),
            ),
            headers=auth("admin"),
        )

        body = response.json()
        assert len(body["uploadedImages"]) == 1
        assert len(body["uploadErrors"]) == 1

    def test_database_failure_removes_uploaded_assets(self, client, db, media, monkeypatch):
        """Test compensation when the product update fails."""
        product_id = insert_product(db)

        def fail(*args, **kwargs):
            raise PyMongoError("write failed")

        monkeypatch.setattr(ProductRepository, "push_images", fail)

        response = client.put(
            "/api/products",
            data={"productId": product_id},
            files=self._files(("a.png", image_bytes(), "image/png"), ("b.png", image_bytes(), "image/png")),
            headers=auth("admin"),
        )

        assert response.status_code == 500
        assert media.assets == {}
        assert len(media.deleted) == 2

    def test_upload_requires_catalog_role(self, client, db):
        """Test that moderators cannot attach images."""
        product_id = insert_product(db)

        response = client.put(
            "/api/products",
            data={"productId": product_id},
            files=self._files(("a.png", image_bytes(), "image/png")),
            headers=auth("moderator", branch="mirpur"),
        )

        assert response.status_code == 403

    def test_size_ceiling_depends_on_role(self, client, db, settings):
        """Test that a file over the default ceiling is accepted from an admin only."""
        data = image_bytes(size=(400, 300))
        settings.upload_max_bytes_default = len(data) - 1
        settings.upload_max_bytes_privileged = len(data) + 1024
        product_id = insert_product(db)
        small = image_bytes()
        assert len(small) < len(data)

        admin = client.put(
            "/api/products",
            data={"productId": product_id},
            files=self._files(("big.png", data, "image/png")),
            headers=auth("admin"),
        )
        manager = client.put(
            "/api/products",
            data={"productId": product_id},
            files=self._files(("big.png", data, "image/png"), ("small.png", small, "image/png")),
            headers=auth("manager"),
        )

        assert admin.status_code == 200
        assert len(admin.json()["uploadedImages"]) == 1
        assert "uploadErrors" not in admin.json()
        assert manager.status_code == 200
        body = manager.json()
        assert len(body["uploadedImages"]) == 1
        assert [e["fileName"] for e in body["uploadErrors"]] == ["big.png"]
        assert "exceeds" in body["uploadErrors"][0]["error"]

    def test_oversize_only_file_is_400_for_manager(self, client, db, settings):
        """Test that a manager upload made only of oversize files fails as a whole."""
        data = image_bytes()
        settings.upload_max_bytes_default = len(data) - 1
        product_id = insert_product(db)

        response = client.put(
            "/api/products",
            data={"productId": product_id},
            files=self._files(("big.png", data, "image/png")),
            headers=auth("manager"),
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["fileName"] == "big.png"

    def test_upload_quota(self, client, db, settings):
        """Test the per-address upload call limit."""
        settings.upload_calls_per_hour = 2
        product_id = insert_product(db)

        statuses = [
            client.put(
                "/api/products",
                data={"productId": product_id},
                files=self._files(("a.png", image_bytes(), "image/png")),
                headers=auth("admin"),
            ).status_code
            for _ in range(3)
        ]

        assert statuses == [200, 200, 429]


class TestDelete:
    """Tests for DELETE /api/products."""

    def test_delete_product_removes_assets(self, client, db, media):
        """Test deleting a product and its stored images."""
        product_id = insert_product(db, images=[_image(1), _image(2)])

        response = client.delete("/api/products", params={"productId": product_id}, headers=auth("admin"))

        assert response.status_code == 200
        assert db["products"].count_documents({}) == 0
        assert media.deleted == [_image(1)["publicId"], _image(2)["publicId"]]

    def test_delete_survives_media_failure(self, client, db, media):
        """Test that asset cleanup failures do not block the delete."""
        media.fail_deletes = True
        product_id = insert_product(db, images=[_image(1)])

        response = client.delete("/api/products", params={"productId": product_id}, headers=auth("admin"))

        assert response.status_code == 200
        assert db["products"].count_documents({}) == 0

    def test_delete_admin_only(self, client, db):
        """Test that managers cannot delete products."""
        product_id = insert_product(db)

        response = client.delete("/api/products", params={"productId": product_id}, headers=auth("manager"))

        assert response.status_code == 403

    def test_delete_single_image(self, client, db, media):
        """Test removing one image from a product."""
        product_id = insert_product(db, images=[_image(1), _image(2)])

        response = client.delete(
            "/api/products",
            params={"productId": product_id, "imagePublicId": _image(1)["publicId"]},
            headers=auth("admin"),
        )

        assert response.status_code == 200
        images = db["products"].find_one({"_id": ObjectId(product_id)})["images"]
        assert [img["publicId"] for img in images] == [_image(2)["publicId"]]
        assert media.deleted == [_image(1)["publicId"]]

    def test_delete_image_not_on_product(self, client, db):
        """Test the 404 for an image id the product does not hold."""
        product_id = insert_product(db)

        response = client.delete(
            "/api/products",
            params={"productId": product_id, "imagePublicId": "vwv_vape_products/other.webp"},
            headers=auth("admin"),
        )

        assert response.status_code == 404

    def test_delete_image_bad_id_format(self, client, db):
        """Test that storage ids with unexpected characters are rejected."""
        product_id = insert_product(db)

        response = client.delete(
            "/api/products",
            params={"productId": product_id, "imagePublicId": "../../etc passwd"},
            headers=auth("admin"),
        )

        assert response.status_code == 400
