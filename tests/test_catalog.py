"""
Tests for catalog resources: products, categories, flash-sales, account-inventory
"""
import pytest

from tests.conftest import ACCOUNT_KEY, PREMIUM_KEY, SMM_KEY, TOPUP_KEY, make_request


class TestProductList:
    """GET products"""

    @pytest.mark.asyncio
    async def test_premium_key_sees_premium_products(self, gateway):
        response = await gateway.handle(make_request("GET", "products"))

        body = response.body
        assert response.status_code == 200
        assert [p["slug"] for p in body["data"]] == ["netflix", "spotify", "youtube"]
        assert {p["style"] for p in body["data"]} == {"premium"}
        assert body["total"] == 3
        assert body["limit"] == 20
        assert body["offset"] == 0
        assert body["api_type"] == "premium"

    @pytest.mark.asyncio
    async def test_embedded_category_summary(self, gateway):
        response = await gateway.handle(make_request("GET", "products"))

        netflix, _, youtube = response.body["data"]
        assert netflix["category"] == {
            "id": "cat-streaming", "name": "Streaming", "name_en": None, "slug": "streaming",
        }
        assert youtube["category"] is None
        assert "category_id" not in netflix

    @pytest.mark.asyncio
    async def test_pagination(self, gateway):
        response = await gateway.handle(
            make_request("GET", "products", query={"limit": "1", "offset": "1"})
        )

        body = response.body
        assert [p["slug"] for p in body["data"]] == ["spotify"]
        assert body["total"] == 3
        assert body["limit"] == 1
        assert body["offset"] == 1

    @pytest.mark.asyncio
    async def test_limit_is_capped(self, gateway):
        response = await gateway.handle(make_request("GET", "products", query={"limit": "5000"}))
        assert response.body["limit"] == 100

    @pytest.mark.asyncio
    async def test_garbage_paging_falls_back_to_defaults(self, gateway):
        response = await gateway.handle(
            make_request("GET", "products", query={"limit": "ten", "offset": "-4"})
        )
        assert response.body["limit"] == 20
        assert response.body["offset"] == 0

    @pytest.mark.asyncio
    async def test_category_filter(self, gateway):
        response = await gateway.handle(make_request("GET", "products", query={"category": "streaming"}))

        assert [p["slug"] for p in response.body["data"]] == ["netflix", "spotify"]
        assert response.body["total"] == 2

    @pytest.mark.asyncio
    async def test_unknown_category_leaves_list_unfiltered(self, gateway):
        response = await gateway.handle(make_request("GET", "products", query={"category": "nope"}))
        assert response.body["total"] == 3

    @pytest.mark.asyncio
    async def test_featured_filter(self, gateway):
        response = await gateway.handle(make_request("GET", "products", query={"featured": "true"}))
        assert [p["slug"] for p in response.body["data"]] == ["netflix"]

    @pytest.mark.asyncio
    async def test_game_account_key(self, gateway):
        response = await gateway.handle(make_request("GET", "products", api_key=ACCOUNT_KEY))

        assert [p["slug"] for p in response.body["data"]] == ["ml-account"]
        assert response.body["api_type"] == "game_account"

    @pytest.mark.asyncio
    async def test_key_without_style_sees_every_active_product(self, gateway):
        response = await gateway.handle(make_request("GET", "products", api_key=SMM_KEY))

        assert response.body["total"] == 5
        assert "retired" not in [p["slug"] for p in response.body["data"]]


class TestProductDetail:
    """GET products/<slug>"""

    @pytest.mark.asyncio
    async def test_detail(self, gateway):
        response = await gateway.handle(make_request("GET", "products/netflix"))

        data = response.body["data"]
        assert response.status_code == 200
        assert data["slug"] == "netflix"
        assert data["category"]["slug"] == "streaming"
        assert [image["id"] for image in data["images"]] == ["img-1", "img-2"]
        assert [package["id"] for package in data["packages"]] == ["pkg-month", "pkg-year"]

    @pytest.mark.asyncio
    async def test_other_style_is_hidden_even_by_slug(self, gateway):
        response = await gateway.handle(make_request("GET", "products/ml-account", api_key=PREMIUM_KEY))

        assert response.status_code == 404
        assert response.body == {
            "success": False,
            "error": "Product not found or not accessible with this API key",
        }

    @pytest.mark.asyncio
    async def test_inactive_product(self, gateway):
        response = await gateway.handle(make_request("GET", "products/retired"))
        assert response.status_code == 404


class TestCategories:
    """GET categories"""

    @pytest.mark.asyncio
    async def test_premium(self, gateway):
        response = await gateway.handle(make_request("GET", "categories"))

        assert response.status_code == 200
        assert [c["slug"] for c in response.body["data"]] == ["streaming"]
        assert response.body["api_type"] == "premium"

    @pytest.mark.asyncio
    async def test_game_account(self, gateway):
        response = await gateway.handle(make_request("GET", "categories", api_key=ACCOUNT_KEY))
        assert [c["slug"] for c in response.body["data"]] == ["mobile-legends"]

    @pytest.mark.asyncio
    async def test_game_topup_forbidden(self, gateway):
        response = await gateway.handle(make_request("GET", "categories", api_key=TOPUP_KEY))

        assert response.status_code == 403
        assert response.body["error"] == "Categories not available for game_topup API type"

    @pytest.mark.asyncio
    async def test_smm_key_gets_game_account_categories(self, gateway):
        response = await gateway.handle(make_request("GET", "categories", api_key=SMM_KEY))
        assert [c["slug"] for c in response.body["data"]] == ["mobile-legends"]


class TestFlashSales:
    """GET flash-sales"""

    @pytest.mark.asyncio
    async def test_premium(self, gateway):
        response = await gateway.handle(make_request("GET", "flash-sales"))

        sales = response.body["data"]
        assert [sale["id"] for sale in sales] == ["sale-mixed"]
        assert [item["id"] for item in sales[0]["items"]] == ["item-netflix"]
        assert sales[0]["items"][0]["product"]["slug"] == "netflix"

    @pytest.mark.asyncio
    async def test_game_topup(self, gateway):
        response = await gateway.handle(make_request("GET", "flash-sales", api_key=TOPUP_KEY))

        sales = response.body["data"]
        assert [sale["id"] for sale in sales] == ["sale-topup"]
        assert response.body["api_type"] == "game_topup"

    @pytest.mark.asyncio
    async def test_game_account(self, gateway):
        response = await gateway.handle(make_request("GET", "flash-sales", api_key=ACCOUNT_KEY))

        sales = response.body["data"]
        assert [item["id"] for item in sales[0]["items"]] == ["item-ml"]

    @pytest.mark.asyncio
    async def test_key_without_style_gets_nothing(self, gateway):
        response = await gateway.handle(make_request("GET", "flash-sales", api_key=SMM_KEY))
        assert response.body["data"] == []


class TestAccountInventory:
    """GET account-inventory"""

    @pytest.mark.asyncio
    async def test_available_count(self, gateway):
        response = await gateway.handle(
            make_request("GET", "account-inventory", api_key=ACCOUNT_KEY,
                         query={"product_id": "prod-ml-account"})
        )

        assert response.status_code == 200
        assert response.body == {"success": True, "data": {"available_count": 2}}

    @pytest.mark.asyncio
    async def test_product_id_required(self, gateway):
        response = await gateway.handle(make_request("GET", "account-inventory", api_key=ACCOUNT_KEY))

        assert response.status_code == 400
        assert response.body["error"] == "product_id is required"

    @pytest.mark.asyncio
    async def test_other_types_forbidden(self, gateway):
        response = await gateway.handle(
            make_request("GET", "account-inventory", query={"product_id": "prod-ml-account"})
        )

        assert response.status_code == 403
        assert response.body["error"] == "Endpoint only available for game_account API type"
