"""
Tests for /api/sales.
"""

import pytest
from bson import ObjectId

from storefront.errors import ValidationFailed
from storefront.inventory import generate_sale_id
from storefront.inventory.sales import parse_day
from tests.conftest import auth, insert_product


def sale_body(*items, payments=None, **overrides) -> dict:
    body = {
        "items": list(items),
        "customer": {"name": "Walk-in", "phone": "01800000000"},
        "payment": {"methods": payments or [{"method": "cash", "amount": 100000}]},
    }
    body.update(overrides)
    return body


def line(product_id: str, quantity: int = 1, **extra) -> dict:
    return {"productId": product_id, "quantity": quantity, **extra}


def stock(db, product_id: str) -> dict:
    return db["products"].find_one({"_id": ObjectId(product_id)})["stock"]


MODERATOR = {"branch": "mirpur"}


class TestSaleHelpers:
    """Tests for sale ids and date bounds."""

    def test_sale_id_format(self):
        """Test the SALE prefix, timestamp and suffix."""
        prefix, ts, suffix = generate_sale_id().split("-")

        assert prefix == "SALE"
        assert ts.isdigit()
        assert len(suffix) == 4

    def test_end_date_covers_whole_day(self):
        """Test that a bare end date reaches the next midnight."""
        assert parse_day("2026-03-01", end=True).isoformat() == "2026-03-02T00:00:00+00:00"
        assert parse_day("2026-03-01").isoformat() == "2026-03-01T00:00:00+00:00"

    def test_invalid_date(self):
        """Test the 400 for an unparseable date."""
        with pytest.raises(ValidationFailed):
            parse_day("yesterday")


class TestRecordSale:
    """Tests for POST /api/sales."""

    def test_moderator_sale_takes_branch_stock(self, client, db):
        """Test the stock decrement, totals and change."""
        product_id = insert_product(db, stock={"ghatpar_stock": 5, "mirpur_stock": 3})

        response = client.post(
            "/api/sales",
            json=sale_body(line(product_id, 2), payments=[{"method": "Cash", "amount": 3000}]),
            headers=auth("moderator", **MODERATOR),
        )

        assert response.status_code == 201, response.json()
        sale = response.json()["sale"]
        assert response.json()["saleId"] == sale["saleId"]
        assert sale["branch"] == "mirpur"
        assert sale["totalAmount"] == 2400
        assert sale["items"][0]["unitPrice"] == 1200
        assert sale["payment"]["change"] == 600
        assert sale["paymentType"] == "cash"
        assert stock(db, product_id) == {"ghatpar_stock": 5, "mirpur_stock": 1}
        assert db["sales"].count_documents({"branch": "mirpur"}) == 1
        assert db["audit_logs"].count_documents({"action": "SALE_RECORDED"}) == 1

    def test_price_comes_from_catalog(self, client, db):
        """Test that a client-supplied price is ignored."""
        product_id = insert_product(db, stock={"mirpur_stock": 3})

        sale = client.post(
            "/api/sales",
            json=sale_body(line(product_id, 1, unitPrice=1)),
            headers=auth("moderator", **MODERATOR),
        ).json()["sale"]

        assert sale["items"][0]["unitPrice"] == 1200

    def test_insufficient_stock(self, client, db):
        """Test the 409 and the available count in the message."""
        product_id = insert_product(db)

        response = client.post(
            "/api/sales",
            json=sale_body(line(product_id, 1)),
            headers=auth("moderator", **MODERATOR),
        )

        assert response.status_code == 409
        assert "Available: 0, Requested: 1" in response.json()["error"]
        assert db["sales"].count_documents({}) == 0

    def test_short_line_puts_earlier_stock_back(self, client, db):
        """Test that a failing line restores the lines already taken."""
        plenty = insert_product(db, name="Plenty", stock={"mirpur_stock": 5})
        scarce = insert_product(db, name="Scarce", stock={"mirpur_stock": 1})

        response = client.post(
            "/api/sales",
            json=sale_body(line(plenty, 2), line(scarce, 1), line(scarce, 1)),
            headers=auth("moderator", **MODERATOR),
        )

        assert response.status_code == 409
        assert stock(db, plenty) == {"mirpur_stock": 5}
        assert stock(db, scarce) == {"mirpur_stock": 1}
        assert db["sales"].count_documents({}) == 0

    def test_moderator_cannot_sell_for_other_branch(self, client, db):
        """Test that moderators are bound to their own branch."""
        product_id = insert_product(db)

        response = client.post(
            "/api/sales",
            json=sale_body(line(product_id), branch="ghatpar"),
            headers=auth("moderator", **MODERATOR),
        )

        assert response.status_code == 403
        assert stock(db, product_id)["ghatpar_stock"] == 5

    def test_items_must_share_the_sale_branch(self, client, db):
        """Test the 400 for a line from another branch."""
        product_id = insert_product(db, stock={"mirpur_stock": 3})

        response = client.post(
            "/api/sales",
            json=sale_body(line(product_id, branch="ghatpar")),
            headers=auth("moderator", **MODERATOR),
        )

        assert response.status_code == 400

    def test_admin_names_a_registered_branch(self, client, db):
        """Test the branch requirement for unbound staff."""
        product_id = insert_product(db)

        missing = client.post("/api/sales", json=sale_body(line(product_id)), headers=auth("admin"))
        unknown = client.post(
            "/api/sales", json=sale_body(line(product_id), branch="uttara"), headers=auth("admin")
        )
        ok = client.post(
            "/api/sales", json=sale_body(line(product_id), branch="Ghatpar"), headers=auth("admin")
        )

        assert missing.status_code == 400
        assert unknown.status_code == 400
        assert ok.status_code == 201
        assert stock(db, product_id)["ghatpar_stock"] == 4

    def test_customers_cannot_record_sales(self, client, db):
        """Test the staff requirement."""
        product_id = insert_product(db)

        assert client.post("/api/sales", json=sale_body(line(product_id))).status_code == 401
        assert client.post("/api/sales", json=sale_body(line(product_id)), headers=auth("user")).status_code == 403

    def test_underpayment(self, client, db):
        """Test that the payment must cover the total."""
        product_id = insert_product(db, stock={"mirpur_stock": 3})

        response = client.post(
            "/api/sales",
            json=sale_body(line(product_id), payments=[{"method": "cash", "amount": 1000}]),
            headers=auth("moderator", **MODERATOR),
        )

        assert response.status_code == 400
        assert stock(db, product_id) == {"mirpur_stock": 3}

    def test_mixed_payment(self, client, db):
        """Test the payment type for split payments."""
        product_id = insert_product(db, stock={"mirpur_stock": 3})

        sale = client.post(
            "/api/sales",
            json=sale_body(
                line(product_id),
                payments=[{"method": "cash", "amount": 200}, {"method": "bkash", "amount": 1000}],
            ),
            headers=auth("moderator", **MODERATOR),
        ).json()["sale"]

        assert sale["paymentType"] == "mixed"
        assert sale["payment"]["totalPaid"] == 1200
        assert sale["payment"]["change"] == 0

    def test_invalid_quantity(self, client, db):
        """Test whole-number quantities."""
        product_id = insert_product(db, stock={"mirpur_stock": 3})

        for quantity in (0, 1.5, "2", True):
            response = client.post(
                "/api/sales",
                json=sale_body(line(product_id, quantity)),
                headers=auth("moderator", **MODERATOR),
            )
            assert response.status_code == 400, quantity

    def test_unknown_product(self, client):
        """Test the 404 for a product id that is not stored."""
        response = client.post(
            "/api/sales",
            json=sale_body(line("65f0c2a1b2c3d4e5f6a7b8c9")),
            headers=auth("moderator", **MODERATOR),
        )

        assert response.status_code == 404


class TestListSales:
    """Tests for GET /api/sales."""

    def _sell(self, client, db, branch: str, method: str = "cash"):
        product_id = insert_product(db, stock={f"{branch}_stock": 5})
        response = client.post(
            "/api/sales",
            json=sale_body(line(product_id), payments=[{"method": method, "amount": 1200}], branch=branch),
            headers=auth("admin"),
        )
        assert response.status_code == 201, response.json()

    def test_moderator_sees_own_branch(self, client, db):
        """Test branch scoping for moderators."""
        self._sell(client, db, "mirpur")
        self._sell(client, db, "ghatpar")

        body = client.get("/api/sales", params={"branch": "ghatpar"}, headers=auth("moderator", **MODERATOR)).json()

        assert [s["branch"] for s in body["sales"]] == ["mirpur"]
        assert body["pagination"]["totalCount"] == 1

    def test_admin_filters(self, client, db):
        """Test branch and payment type filters."""
        self._sell(client, db, "mirpur", "cash")
        self._sell(client, db, "mirpur", "bkash")
        self._sell(client, db, "ghatpar", "cash")

        by_branch = client.get("/api/sales", params={"branch": "mirpur"}, headers=auth("admin")).json()
        by_payment = client.get("/api/sales", params={"paymentType": "cash"}, headers=auth("admin")).json()

        assert by_branch["pagination"]["totalCount"] == 2
        assert by_payment["pagination"]["totalCount"] == 2

    def test_pagination(self, client, db):
        """Test the pagination block."""
        for _ in range(3):
            self._sell(client, db, "mirpur")

        body = client.get("/api/sales", params={"limit": 2, "page": 1}, headers=auth("admin")).json()

        assert len(body["sales"]) == 2
        assert body["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalCount": 3,
            "hasNextPage": True,
            "hasPrevPage": False,
        }

    def test_invalid_filters(self, client):
        """Test the 400 for bad dates and statuses."""
        assert client.get("/api/sales", params={"startDate": "soon"}, headers=auth("admin")).status_code == 400
        assert client.get("/api/sales", params={"status": "lost"}, headers=auth("admin")).status_code == 400

    def test_staff_only(self, client):
        """Test that customers cannot list sales."""
        assert client.get("/api/sales", headers=auth("user")).status_code == 403
