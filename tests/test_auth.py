"""
Unit tests for authentication module
Tests bearer extraction, key lookup, client IP resolution and the IP allow-list
"""
import pytest

from public_api_server.auth import (
    authenticate,
    enforce_ip_allowlist,
    extract_bearer_token,
    resolve_client_ip,
)
from public_api_server.errors import Forbidden, Unauthorized
from public_api_server.models import ApiKeyRecord, ApiType
from tests.conftest import INACTIVE_KEY, PENDING_KEY, PREMIUM_KEY, SMM_KEY


class TestExtractBearerToken:
    """Test suite for the Authorization header"""

    def test_extracts_token(self):
        assert extract_bearer_token({"authorization": "Bearer abc123"}) == "abc123"

    def test_missing_header(self):
        with pytest.raises(Unauthorized) as exc_info:
            extract_bearer_token({})

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Missing or invalid API key"

    def test_wrong_scheme(self):
        with pytest.raises(Unauthorized):
            extract_bearer_token({"authorization": "Basic dXNlcjpwYXNz"})

    def test_empty_token(self):
        with pytest.raises(Unauthorized):
            extract_bearer_token({"authorization": "Bearer   "})


class TestAuthenticate:
    """Test suite for key lookup"""

    @pytest.mark.asyncio
    async def test_valid_key(self, store):
        key = await authenticate(store, PREMIUM_KEY)

        assert key.id == "key-premium"
        assert key.user_id == "user-1"
        assert key.api_type is ApiType.PREMIUM

    @pytest.mark.asyncio
    async def test_smm_key(self, store):
        key = await authenticate(store, SMM_KEY)
        assert key.api_type is ApiType.SMM

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["no-such-key", INACTIVE_KEY, PENDING_KEY])
    async def test_unusable_keys_share_one_message(self, store, token):
        with pytest.raises(Unauthorized) as exc_info:
            await authenticate(store, token)

        assert exc_info.value.message == "Invalid, inactive, or unapproved API key"

    @pytest.mark.asyncio
    async def test_key_match_is_exact(self, store):
        with pytest.raises(Unauthorized):
            await authenticate(store, PREMIUM_KEY.upper())


class TestResolveClientIP:
    """Test suite for client address resolution"""

    def test_first_forwarded_entry(self):
        headers = {"x-forwarded-for": "5.6.7.8, 10.0.0.1", "cf-connecting-ip": "9.9.9.9"}
        assert resolve_client_ip(headers) == "5.6.7.8"

    def test_cloudflare_fallback(self):
        assert resolve_client_ip({"cf-connecting-ip": "9.9.9.9"}) == "9.9.9.9"

    def test_unknown(self):
        assert resolve_client_ip({}) == "unknown"


class TestIPAllowlist:
    """Test suite for the per-key allow-list"""

    @pytest.fixture
    def restricted_key(self):
        return ApiKeyRecord(
            id="key-1",
            api_key="k",
            user_id="u",
            is_active=True,
            status="approved",
            ip_whitelist="1.1.1.1, 2.2.2.2",
        )

    def test_allowed_address(self, restricted_key):
        enforce_ip_allowlist(restricted_key, "2.2.2.2")

    def test_blocked_address(self, restricted_key):
        with pytest.raises(Forbidden) as exc_info:
            enforce_ip_allowlist(restricted_key, "3.3.3.3")

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "IP address not allowed"

    def test_unknown_address_is_let_through(self, restricted_key):
        enforce_ip_allowlist(restricted_key, "unknown")

    def test_empty_allowlist_allows_everyone(self):
        key = ApiKeyRecord(id="key-2", api_key="k2", user_id="u", ip_whitelist="  ")
        enforce_ip_allowlist(key, "3.3.3.3")
