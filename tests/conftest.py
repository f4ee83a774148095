"""Shared test fixtures"""
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from public_api_server.config import Settings
from public_api_server.context import GatewayRequest
from public_api_server.gateway import PublicAPIGateway
from public_api_server.smm_provider import SMMProviderClient
from public_api_server.store import InMemoryRecordStore

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
PUBLIC_API_PATH = "/functions/v1/public-api"

PREMIUM_KEY = "pk_premium_123"
ACCOUNT_KEY = "pk_account_123"
TOPUP_KEY = "pk_topup_123"
SMM_KEY = "pk_smm_123"
SMM_SMALL_KEY = "pk_smm_small_123"
INACTIVE_KEY = "pk_inactive_123"
PENDING_KEY = "pk_pending_123"
RESTRICTED_KEY = "pk_restricted_123"


class FakeNotifier:
    """Records warning dispatches instead of sending email."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def dispatch(self, key, percent, current, limit):
        self.calls.append(
            {"key_id": key.id, "percent": percent, "current": current, "limit": limit}
        )

    async def drain(self):
        return None


class FakeSMMPanel:
    """Stands in for the upstream SMM panel behind httpx.MockTransport."""

    def __init__(self):
        self.requests: List[Dict[str, str]] = []
        self.responses: Dict[str, Any] = {
            "services": [{"service": 42, "name": "Followers", "rate": "10.00"}],
            "balance": {"balance": "250.50", "currency": "USD"},
            "add": {"order": 999888},
            "status": {"charge": "12", "status": "In progress", "remains": "10"},
            "refill": {"refill": 7},
            "cancel": [{"order": 999888, "cancel": 1}],
        }
        self.raise_on: Optional[str] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = {name: values[0] for name, values in parse_qs(request.content.decode()).items()}
        self.requests.append(form)
        action = form.get("action")
        if action == self.raise_on:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=self.responses.get(action, {"error": "Unknown action"}))

    def actions(self) -> List[str]:
        return [form.get("action") for form in self.requests]

    def factory(self, domain: str, api_key: str) -> SMMProviderClient:
        return SMMProviderClient(domain, api_key, transport=httpx.MockTransport(self.handler))


def _key(key_id: str, api_key: str, api_type: Optional[str], user_id: str, **overrides) -> Dict[str, Any]:
    row = {
        "id": key_id,
        "api_key": api_key,
        "user_id": user_id,
        "name": f"{key_id} key",
        "is_active": True,
        "status": "approved",
        "api_type": api_type,
        "rate_limit_per_minute": 60,
        "rate_limit_per_day": 10000,
        "ip_whitelist": None,
        "last_used_at": None,
        "request_count": 0,
    }
    row.update(overrides)
    return row


def seed_store(store: InMemoryRecordStore) -> InMemoryRecordStore:
    store.seed("user_api_keys", [
        _key("key-premium", PREMIUM_KEY, "premium", "user-1"),
        _key("key-account", ACCOUNT_KEY, "game_account", "user-1"),
        _key("key-topup", TOPUP_KEY, "game_topup", "user-1"),
        _key("key-smm", SMM_KEY, "smm", "user-smm"),
        _key("key-smm-small", SMM_SMALL_KEY, "smm", "user-small"),
        _key("key-inactive", INACTIVE_KEY, "premium", "user-1", is_active=False),
        _key("key-pending", PENDING_KEY, "premium", "user-1", status="pending"),
        _key("key-restricted", RESTRICTED_KEY, "premium", "user-1", ip_whitelist="1.1.1.1, 2.2.2.2"),
    ])
    store.seed("profiles", [
        {"id": "profile-1", "user_id": "user-1", "email": "owner@storefront.io",
         "full_name": "Store Owner", "balance": Decimal("100")},
        {"id": "profile-smm", "user_id": "user-smm", "email": "reseller@storefront.io",
         "full_name": "Reseller", "balance": Decimal("50000")},
        {"id": "profile-small", "user_id": "user-small", "email": None,
         "full_name": None, "balance": Decimal("1000")},
    ])

    store.seed("categories", [
        {"id": "cat-streaming", "name": "Streaming", "slug": "streaming", "style": "premium",
         "is_active": True, "sort_order": 1},
        {"id": "cat-mlbb", "name": "Mobile Legends", "slug": "mobile-legends", "style": "game_account",
         "is_active": True, "sort_order": 1},
        {"id": "cat-hidden", "name": "Hidden", "slug": "hidden", "style": "premium",
         "is_active": False, "sort_order": 2},
    ])
    store.seed("products", [
        {"id": "prod-netflix", "category_id": "cat-streaming", "name": "Netflix", "slug": "netflix",
         "price": Decimal("9.99"), "style": "premium", "is_active": True, "is_featured": True, "sort_order": 1},
        {"id": "prod-spotify", "category_id": "cat-streaming", "name": "Spotify", "slug": "spotify",
         "price": Decimal("4.99"), "style": "premium", "is_active": True, "is_featured": False, "sort_order": 2},
        {"id": "prod-youtube", "category_id": None, "name": "YouTube", "slug": "youtube",
         "price": Decimal("3.99"), "style": "premium", "is_active": True, "is_featured": False, "sort_order": 3},
        {"id": "prod-retired", "category_id": "cat-streaming", "name": "Retired", "slug": "retired",
         "price": Decimal("1.00"), "style": "premium", "is_active": False, "is_featured": True, "sort_order": 4},
        {"id": "prod-ml-account", "category_id": "cat-mlbb", "name": "ML Account", "slug": "ml-account",
         "price": Decimal("25.00"), "style": "game_account", "is_active": True, "is_featured": False, "sort_order": 1},
        {"id": "prod-diamonds", "category_id": None, "name": "Diamonds", "slug": "diamonds",
         "price": Decimal("2.00"), "style": "game_topup", "is_active": True, "is_featured": False, "sort_order": 1},
    ])
    store.seed("product_images", [
        {"id": "img-2", "product_id": "prod-netflix", "image_url": "https://cdn/netflix-2.png", "sort_order": 2},
        {"id": "img-1", "product_id": "prod-netflix", "image_url": "https://cdn/netflix-1.png", "sort_order": 1},
    ])
    store.seed("product_packages", [
        {"id": "pkg-year", "product_id": "prod-netflix", "name": "1 year", "price": Decimal("99"),
         "is_active": True, "sort_order": 2},
        {"id": "pkg-month", "product_id": "prod-netflix", "name": "1 month", "price": Decimal("9.99"),
         "is_active": True, "sort_order": 1},
    ])

    store.seed("flash_sales", [
        {"id": "sale-mixed", "name": "Mixed sale", "start_date": NOW - timedelta(hours=1),
         "end_date": NOW + timedelta(hours=1), "is_active": True},
        {"id": "sale-topup", "name": "Topup sale", "start_date": NOW - timedelta(hours=2),
         "end_date": NOW + timedelta(hours=2), "is_active": True},
        {"id": "sale-expired", "name": "Expired sale", "start_date": NOW - timedelta(days=2),
         "end_date": NOW - timedelta(days=1), "is_active": True},
    ])
    store.seed("flash_sale_items", [
        {"id": "item-netflix", "flash_sale_id": "sale-mixed", "product_id": "prod-netflix",
         "sale_price": Decimal("7.99")},
        {"id": "item-ml", "flash_sale_id": "sale-mixed", "product_id": "prod-ml-account",
         "sale_price": Decimal("20.00")},
        {"id": "item-ghost", "flash_sale_id": "sale-mixed", "product_id": "prod-deleted",
         "sale_price": Decimal("1.00")},
        {"id": "item-diamonds", "flash_sale_id": "sale-topup", "product_id": "prod-diamonds",
         "sale_price": Decimal("1.50")},
        {"id": "item-old", "flash_sale_id": "sale-expired", "product_id": "prod-netflix",
         "sale_price": Decimal("5.00")},
    ])
    store.seed("game_account_inventory", [
        {"product_id": "prod-ml-account", "account_data": "a", "status": "available"},
        {"product_id": "prod-ml-account", "account_data": "b", "status": "available"},
        {"product_id": "prod-ml-account", "account_data": "c", "status": "sold"},
    ])

    store.seed("smm_config", [
        {"id": "smm-config", "api_domain": "panel.example.net", "api_key": "panel-secret", "is_active": True},
    ])
    store.seed("smm_services", [
        {"id": "svc-42", "external_service_id": "42", "name": "Followers",
         "rate": Decimal("10"), "markup_percent": Decimal("20")},
    ])
    return store


@pytest.fixture
def settings() -> Settings:
    """Settings for an in-process store with notifications disabled"""
    return Settings(environment="test", database_url="memory://", notification_url=None)


@pytest.fixture
def store() -> InMemoryRecordStore:
    """In-memory store seeded with keys, profiles, catalog and SMM data"""
    return seed_store(InMemoryRecordStore(clock=lambda: NOW))


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def panel() -> FakeSMMPanel:
    return FakeSMMPanel()


@pytest.fixture
def gateway(store, settings, notifier, panel) -> PublicAPIGateway:
    """Gateway wired to the seeded store, fake notifier and fake SMM panel"""
    return PublicAPIGateway(
        store,
        settings,
        notifier=notifier,
        provider_factory=panel.factory,
        clock=lambda: NOW,
    )


def make_request(
    method: str,
    route: str,
    api_key: Optional[str] = PREMIUM_KEY,
    query: Optional[Dict[str, str]] = None,
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> GatewayRequest:
    """Build a gateway request for <PUBLIC_API_PATH>/<route>."""
    all_headers = {"User-Agent": "pytest-client"}
    if api_key is not None:
        all_headers["Authorization"] = f"Bearer {api_key}"
    all_headers.update(headers or {})

    if body is None:
        raw = b""
    elif isinstance(body, bytes):
        raw = body
    else:
        raw = json.dumps(body).encode()

    return GatewayRequest(
        method=method,
        path=f"{PUBLIC_API_PATH}/{route}",
        headers=all_headers,
        query=query or {},
        body=raw,
    )
