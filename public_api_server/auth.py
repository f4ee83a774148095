"""
Authentication module: API key lookup and IP allow-listing.

Keys are application-level rows in user_api_keys, matched by exact string.
"""
from typing import Mapping

from public_api_server.errors import Forbidden, Unauthorized
from public_api_server.logging_config import log_auth_failure, log_ip_blocked
from public_api_server.models import APPROVED_STATUS, ApiKeyRecord
from public_api_server.store import RecordStore, eq

BEARER_PREFIX = "Bearer "
UNKNOWN_IP = "unknown"

MISSING_KEY_MESSAGE = "Missing or invalid API key"
# Same message for unknown and disabled keys so callers cannot tell which keys exist.
INVALID_KEY_MESSAGE = "Invalid, inactive, or unapproved API key"


def extract_bearer_token(headers: Mapping[str, str]) -> str:
    """
    Pull the API key out of an `Authorization: Bearer <key>` header.

    Args:
        headers: Request headers with lower-cased names

    Raises:
        Unauthorized: If the header is missing or not a Bearer credential
    """
    auth_header = headers.get("authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        log_auth_failure("missing_bearer")
        raise Unauthorized(MISSING_KEY_MESSAGE)

    token = auth_header[len(BEARER_PREFIX):].strip()
    if not token:
        log_auth_failure("empty_bearer")
        raise Unauthorized(MISSING_KEY_MESSAGE)
    return token


async def authenticate(store: RecordStore, token: str) -> ApiKeyRecord:
    """
    Resolve the tenant behind an API key.

    Args:
        store: Record store
        token: Raw API key from the request

    Returns:
        The key record, which becomes the request's tenant context

    Raises:
        Unauthorized: If no active, approved key matches
    """
    row = await store.select_one(
        "user_api_keys",
        [
            eq("api_key", token),
            eq("is_active", True),
            eq("status", APPROVED_STATUS),
        ],
    )
    if row is None:
        log_auth_failure("key_not_usable", api_key=token)
        raise Unauthorized(INVALID_KEY_MESSAGE)

    key = ApiKeyRecord.model_validate(row)
    if not key.is_usable:
        log_auth_failure("key_not_usable", api_key=token)
        raise Unauthorized(INVALID_KEY_MESSAGE)
    return key


def resolve_client_ip(headers: Mapping[str, str]) -> str:
    """First X-Forwarded-For entry, then CF-Connecting-IP, else "unknown"."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    cf_ip = headers.get("cf-connecting-ip")
    if cf_ip and cf_ip.strip():
        return cf_ip.strip()

    return UNKNOWN_IP


def enforce_ip_allowlist(key: ApiKeyRecord, client_ip: str) -> None:
    """
    Reject callers outside the key's allow-list.

    An unresolvable address ("unknown") is let through: some proxies strip
    the forwarding headers and blocking them would lock tenants out.

    Raises:
        Forbidden: If the address is known and not allowed
    """
    allowed = key.allowed_ips
    if not allowed or client_ip == UNKNOWN_IP:
        return

    if client_ip not in allowed:
        log_ip_blocked(client_ip, key.id, len(allowed))
        raise Forbidden("IP address not allowed")
