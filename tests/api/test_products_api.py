"""
API Tests - Products Endpoints
"""
import pytest
from httpx import ASGITransport, AsyncClient

PRODUCTS = "/api/v1/products"


async def create(client: AsyncClient, payload: dict) -> dict:
    response = await client.post(f"{PRODUCTS}/create", json=payload)
    assert response.status_code == 200, response.text
    return response.json()["product"]


class TestApplication:
    """Tests for app-level routes and handlers"""

    async def test_ping(self, client):
        """Test liveness ping"""
        response = await client.get("/ping")

        assert response.status_code == 200
        assert response.text == "pong"

    async def test_unknown_route(self, client):
        """Test the catch-all not-found envelope"""
        response = await client.get("/api/v1/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "resource not found"}

    async def test_unsupported_method(self, client):
        """Test that a method miss looks like a route miss"""
        response = await client.patch(f"{PRODUCTS}/classic-tee")

        assert response.status_code == 404
        assert response.json()["message"] == "resource not found"

    async def test_unhandled_error_envelope(self, app):
        """Test that unexpected failures become a 500 envelope"""
        async def explode():
            raise RuntimeError("boom")

        app.add_api_route("/explode", explode)
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/explode")

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "statusCode": 500,
            "message": "Internal Server Error",
        }

    async def test_cors_preflight(self, client):
        """Test that any origin may call the API"""
        response = await client.options(
            PRODUCTS,
            headers={
                "Origin": "https://shop.example.com",
                "Access-Control-Request-Method": "PUT",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    async def test_health_live(self, client):
        """Test liveness probe"""
        response = await client.get("/api/v1/health/live")

        assert response.status_code == 200

    async def test_health_checks_database(self, client):
        """Test full health check"""
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["environment"] == "testing"
        assert body["checks"]["database"]["status"] == "healthy"
        assert "redis" not in body["checks"]


class TestCreateProduct:
    """Tests for POST /products/create"""

    async def test_create(self, client, catalog, make_payload):
        """Test successful creation"""
        response = await client.post(
            f"{PRODUCTS}/create",
            json=make_payload(categories=[catalog["shirts"]], tags=[catalog["new"]]),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "New product added"

        product = body["product"]
        assert product["slug"] == "classic-tee"
        assert product["totalQuantity"] == 12
        assert [v["size"] for v in product["productVariants"]] == ["M", "42"]
        assert product["productVariants"][0]["price"] == 19.99
        assert product["productImages"][0]["isDefault"] is True
        assert [c["slug"] for c in product["categories"]] == ["shirts"]
        assert [t["slug"] for t in product["tags"]] == ["new"]

    async def test_duplicate_name(self, client, make_payload):
        """Test that a taken name is rejected before any write"""
        await create(client, make_payload())

        payload = make_payload()
        for variant in payload["productVariants"]:
            variant["sku"] += "-b"
        payload["productImages"][0]["url"] += "?b"
        response = await client.post(f"{PRODUCTS}/create", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["statusCode"] == 400
        assert {"field": "name", "message": "Product already exists"} in body["errors"]

        listing = (await client.get(PRODUCTS)).json()
        assert listing["total"] == 1

    async def test_existing_sku(self, client, make_payload):
        """Test that a SKU owned by another product is rejected"""
        await create(client, make_payload(name="Classic Tee"))

        payload = make_payload(name="Denim Jacket")
        payload["productVariants"][0]["sku"] = "classic-tee-0"
        response = await client.post(f"{PRODUCTS}/create", json=payload)

        assert response.status_code == 400
        assert [e["field"] for e in response.json()["errors"]] == ["productVariants"]

    async def test_missing_fields(self, client, make_payload):
        """Test schema validation envelope"""
        payload = make_payload()
        del payload["productVariants"]
        del payload["description"]

        response = await client.post(f"{PRODUCTS}/create", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert {e["field"] for e in body["errors"]} == {"productVariants", "description"}

    async def test_size_must_be_text_or_number(self, client, make_payload):
        """Test variant size type"""
        payload = make_payload()
        payload["productVariants"][0]["size"] = True

        response = await client.post(f"{PRODUCTS}/create", json=payload)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"].startswith("productVariants.0.size")

    @pytest.mark.parametrize("name", ["!!!", "日本語"])
    async def test_name_without_slug(self, client, make_payload, name):
        """Test that a name producing an empty slug is rejected before any write"""
        payload = make_payload()
        payload["name"] = name

        response = await client.post(f"{PRODUCTS}/create", json=payload)

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"field": "name", "message": "Name must contain at least one letter or digit"}
        ]
        assert (await client.get(PRODUCTS)).json()["total"] == 0

    @pytest.mark.parametrize("name", ["Views", "Create"])
    async def test_route_names_are_reserved(self, client, make_payload, name):
        """Test that a name whose slug is a fixed route is rejected"""
        payload = make_payload()
        payload["name"] = name

        response = await client.post(f"{PRODUCTS}/create", json=payload)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "name"

    async def test_unknown_category(self, client, make_payload):
        """Test that unknown category ids are rejected and nothing is stored"""
        response = await client.post(f"{PRODUCTS}/create", json=make_payload(categories=[999]))

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "categories"
        assert (await client.get(PRODUCTS)).json()["total"] == 0


class TestReadProducts:
    """Tests for GET /products and GET /products/{slug}"""

    async def test_empty_listing(self, client):
        """Test listing an empty catalog"""
        response = await client.get(PRODUCTS)

        assert response.status_code == 200
        assert response.json() == {"success": True, "total": 0, "products": []}

    async def test_listing_filters(self, client, catalog, make_payload):
        """Test query parameters on the listing"""
        await create(client, make_payload(name="Classic Tee", price="15", categories=[catalog["shirts"]]))
        await create(client, make_payload(name="Chino Pants", price="45", color="beige", categories=[catalog["pants"]]))
        await create(client, make_payload(name="Linen Tee", price="30", tags=[catalog["sale"]]))

        async def names(**params):
            body = (await client.get(PRODUCTS, params=params)).json()
            return [p["name"] for p in body["products"]], body["total"]

        assert await names(search="tee") == (["Classic Tee", "Linen Tee"], 2)
        assert await names(minPrice="20", maxPrice="50") == (["Chino Pants", "Linen Tee"], 2)
        assert await names(minPrice="20") == (["Classic Tee", "Chino Pants", "Linen Tee"], 3)
        assert await names(categorySlug="pants") == (["Chino Pants"], 1)
        assert await names(tagSlug="sale") == (["Linen Tee"], 1)
        assert await names(color="beige") == (["Chino Pants"], 1)
        assert await names(page="2", limit="2") == (["Linen Tee"], 3)
        assert await names(limit="abc") == (["Classic Tee", "Chino Pants", "Linen Tee"], 3)
        assert await names(limit="99999999999999999999") == (["Classic Tee", "Chino Pants", "Linen Tee"], 3)
        assert await names(page="99999999999999999999", limit="2") == ([], 3)

    async def test_listing_omits_links(self, client, catalog, make_payload):
        """Test listed products carry variants and images only"""
        await create(client, make_payload(categories=[catalog["shirts"]]))

        product = (await client.get(PRODUCTS)).json()["products"][0]

        assert "productVariants" in product and "productImages" in product
        assert "categories" not in product

    async def test_get_product(self, client, make_payload):
        """Test product detail"""
        await create(client, make_payload())

        response = await client.get(f"{PRODUCTS}/classic-tee")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["product"]["name"] == "Classic Tee"
        assert body["product"]["categories"] == []

    async def test_get_missing_product(self, client):
        """Test a missing product is reported in the body"""
        response = await client.get(f"{PRODUCTS}/nope")

        assert response.status_code == 200
        assert response.json() == {"success": False, "message": "Product does not exist"}


class TestUpdateProduct:
    """Tests for PUT /products/{slug}"""

    async def test_update(self, client, catalog, make_payload):
        """Test update recomputes totals and replaces links"""
        await create(client, make_payload(categories=[catalog["shirts"]]))

        response = await client.put(
            f"{PRODUCTS}/classic-tee",
            json=make_payload(quantities=(1, 2), categories=[catalog["pants"]]),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Product updated"
        assert body["product"]["totalQuantity"] == 3
        assert [c["slug"] for c in body["product"]["categories"]] == ["pants"]

    async def test_update_missing(self, client, make_payload):
        """Test update of an unknown slug"""
        response = await client.put(f"{PRODUCTS}/nope", json=make_payload())

        assert response.status_code == 404
        assert response.json() == {"success": False, "statusCode": 404, "message": "Product not found"}

    async def test_update_slug_conflict(self, client, make_payload):
        """Test renaming onto an existing product"""
        await create(client, make_payload(name="Classic Tee"))
        await create(client, make_payload(name="Denim Jacket"))

        payload = make_payload(name="Denim Jacket")
        for i, variant in enumerate(payload["productVariants"]):
            variant["sku"] = f"classic-tee-{i}"

        response = await client.put(f"{PRODUCTS}/classic-tee", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == "Product already exists"
        assert (await client.get(f"{PRODUCTS}/classic-tee")).json()["product"]["name"] == "Classic Tee"


    @pytest.mark.parametrize("name", ["!!!", "Views"])
    async def test_update_to_unusable_name(self, client, make_payload, name):
        """Test that renaming to an unreachable slug is rejected with nothing written"""
        await create(client, make_payload())

        payload = make_payload()
        payload["name"] = name
        response = await client.put(f"{PRODUCTS}/classic-tee", json=payload)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "name"
        assert (await client.get(f"{PRODUCTS}/classic-tee")).json()["product"]["name"] == "Classic Tee"


class TestDeleteProduct:
    """Tests for DELETE /products/{slug}"""

    async def test_delete(self, client, make_payload):
        """Test delete then read"""
        await create(client, make_payload())

        response = await client.delete(f"{PRODUCTS}/classic-tee")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Product deleted"}
        assert (await client.get(f"{PRODUCTS}/classic-tee")).json()["success"] is False

    async def test_delete_missing(self, client):
        """Test delete of an unknown slug"""
        response = await client.delete(f"{PRODUCTS}/nope")

        assert response.status_code == 404
        assert response.json()["message"] == "Product not found"


class TestProductViews:
    """Tests for view tracking endpoints"""

    async def test_view_messages(self, client, make_payload):
        """Test first, repeat and new visitor messages"""
        await create(client, make_payload())
        url = f"{PRODUCTS}/classic-tee/views"

        first = await client.post(url, headers={"User-Agent": "agent-a"})
        repeat = await client.post(url, headers={"User-Agent": "agent-a"})
        other = await client.put(url, headers={"User-Agent": "agent-b"})

        assert first.json() == {"success": True, "message": "First product view this month"}
        assert repeat.json()["message"] == "Product already viewed by client this month"
        assert other.json()["message"] == "New product view this month"

    async def test_view_missing_product(self, client):
        """Test views of a missing product"""
        response = await client.post(f"{PRODUCTS}/nope/views")

        assert response.status_code == 200
        assert response.json() == {"success": False, "message": "Product does not exist"}

    async def test_list_views(self, client, make_payload):
        """Test the monthly view listing"""
        await create(client, make_payload())
        for agent in ("agent-a", "agent-b", "agent-a"):
            await client.post(f"{PRODUCTS}/classic-tee/views", headers={"User-Agent": agent})

        response = await client.get(f"{PRODUCTS}/views")

        assert response.status_code == 200
        views = response.json()["productViews"]
        assert len(views) == 1
        assert views[0]["visitorCount"] == 2
        assert views[0]["product"] == {"name": "Classic Tee", "slug": "classic-tee"}

    @pytest.mark.parametrize("method", ["post", "put"])
    async def test_both_methods_record(self, client, make_payload, method):
        """Test that POST and PUT both record a view"""
        await create(client, make_payload())

        response = await getattr(client, method)(f"{PRODUCTS}/classic-tee/views")

        assert response.json()["message"] == "First product view this month"
