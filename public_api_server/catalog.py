"""
Catalog resources: products, categories, flash-sales, account-inventory.

Every query is narrowed to the product style of the calling key, so a key
only ever sees the slice of the catalog that matches its tenant type.
"""
from typing import Any, Dict, Iterable, List, Optional

from public_api_server.context import RequestContext
from public_api_server.errors import BadRequest, Forbidden, NotFound
from public_api_server.models import ApiType, ProductStyle, category_style_for_api_type
from public_api_server.store import Filter, eq, gte, lte

PRODUCT_LIST_FIELDS = (
    "id", "name", "name_en", "slug", "price", "image_url", "style",
    "is_featured", "short_description", "short_description_en",
)
CATEGORY_SUMMARY_FIELDS = ("id", "name", "name_en", "slug")
CATEGORY_FIELDS = (
    "id", "name", "name_en", "slug", "description", "description_en",
    "image_url", "style",
)
FLASH_SALE_FIELDS = ("id", "name", "description", "banner_url", "start_date", "end_date")
FLASH_SALE_ITEM_FIELDS = (
    "id", "product_id", "package_id", "original_price", "sale_price",
    "discount_percent", "quantity_limit", "quantity_sold",
)
FLASH_SALE_PRODUCT_FIELDS = ("id", "name", "name_en", "slug", "image_url", "style")

AVAILABLE_STATUS = "available"


def _project(row: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    return {name: row.get(name) for name in fields}


def _parse_int(value: Optional[str], default: int, minimum: int, maximum: Optional[int] = None) -> int:
    """Lenient query-string integer; garbage falls back to the default."""
    try:
        number = int(value) if value is not None else default
    except (TypeError, ValueError):
        number = default
    number = max(number, minimum)
    if maximum is not None:
        number = min(number, maximum)
    return number


def _style_filters(style: Optional[ProductStyle]) -> List[Filter]:
    return [eq("style", style.value)] if style else []


async def handle_products(ctx: RequestContext) -> Dict[str, Any]:
    """GET products[/<slug>]"""
    if ctx.param:
        return await _get_product(ctx, ctx.param)
    return await _list_products(ctx)


async def _get_product(ctx: RequestContext, slug: str) -> Dict[str, Any]:
    filters = [eq("slug", slug), eq("is_active", True)] + _style_filters(ctx.key.style)
    product = await ctx.store.select_one("products", filters)
    if product is None:
        raise NotFound("Product not found or not accessible with this API key")

    category = None
    if product.get("category_id"):
        category = await ctx.store.select_one("categories", [eq("id", product["category_id"])])

    images = await ctx.store.select(
        "product_images", [eq("product_id", product["id"])], order_by="sort_order"
    )
    packages = await ctx.store.select(
        "product_packages", [eq("product_id", product["id"])], order_by="sort_order"
    )

    data = {**product, "category": category, "images": images, "packages": packages}
    return {"success": True, "data": data}


async def _list_products(ctx: RequestContext) -> Dict[str, Any]:
    settings = ctx.settings
    limit = _parse_int(ctx.query.get("limit"), settings.default_page_size, 1, settings.max_page_size)
    offset = _parse_int(ctx.query.get("offset"), 0, 0)

    filters = [eq("is_active", True)] + _style_filters(ctx.key.style)

    category_slug = ctx.query.get("category")
    if category_slug:
        category = await ctx.store.select_one("categories", [eq("slug", category_slug)])
        # An unknown slug leaves the list unfiltered.
        if category:
            filters.append(eq("category_id", category["id"]))

    if ctx.query.get("featured") == "true":
        filters.append(eq("is_featured", True))

    total = await ctx.store.count("products", filters)
    rows = await ctx.store.select(
        "products", filters, order_by="sort_order", limit=limit, offset=offset
    )

    categories: Dict[str, Optional[Dict[str, Any]]] = {}
    products = []
    for row in rows:
        category_id = row.get("category_id")
        if category_id and category_id not in categories:
            found = await ctx.store.select_one("categories", [eq("id", category_id)])
            categories[category_id] = _project(found, CATEGORY_SUMMARY_FIELDS) if found else None

        item = _project(row, PRODUCT_LIST_FIELDS)
        item["category"] = categories.get(category_id) if category_id else None
        products.append(item)

    return {
        "success": True,
        "data": products,
        "total": total,
        "limit": limit,
        "offset": offset,
        "api_type": ctx.key.api_type_value,
    }


async def handle_categories(ctx: RequestContext) -> Dict[str, Any]:
    """GET categories"""
    if ctx.key.api_type is ApiType.GAME_TOPUP:
        raise Forbidden("Categories not available for game_topup API type")

    style = category_style_for_api_type(ctx.key.api_type)
    rows = await ctx.store.select(
        "categories",
        [eq("is_active", True), eq("style", style.value)],
        order_by="sort_order",
    )
    return {
        "success": True,
        "data": [_project(row, CATEGORY_FIELDS) for row in rows],
        "api_type": ctx.key.api_type_value,
    }


async def handle_flash_sales(ctx: RequestContext) -> Dict[str, Any]:
    """
    GET flash-sales

    Running sales only. Items are kept when their product matches the
    key's style; a key without a style therefore sees no items, and sales
    left empty are dropped.
    """
    style = ctx.key.style
    sales = await ctx.store.select(
        "flash_sales",
        [eq("is_active", True), lte("start_date", ctx.now), gte("end_date", ctx.now)],
        order_by="start_date",
    )

    result = []
    for sale in sales:
        items = []
        for item in await ctx.store.select("flash_sale_items", [eq("flash_sale_id", sale["id"])]):
            product = await ctx.store.select_one("products", [eq("id", item["product_id"])])
            if product is None:
                continue
            if style is None or product.get("style") != style.value:
                continue
            entry = _project(item, FLASH_SALE_ITEM_FIELDS)
            entry["product"] = _project(product, FLASH_SALE_PRODUCT_FIELDS)
            items.append(entry)

        if items:
            result.append({**_project(sale, FLASH_SALE_FIELDS), "items": items})

    return {"success": True, "data": result, "api_type": ctx.key.api_type_value}


async def handle_account_inventory(ctx: RequestContext) -> Dict[str, Any]:
    """
    GET account-inventory?product_id=...

    Only the number of available accounts is returned, never the accounts.
    """
    if ctx.key.api_type is not ApiType.GAME_ACCOUNT:
        raise Forbidden("Endpoint only available for game_account API type")

    product_id = ctx.query.get("product_id")
    if not product_id:
        raise BadRequest("product_id is required")

    count = await ctx.store.count(
        "game_account_inventory",
        [eq("product_id", product_id), eq("status", AVAILABLE_STATUS)],
    )
    return {"success": True, "data": {"available_count": count}}
