"""
Client for the upstream SMM panel (standard "API v2" protocol).

Every call is a form-encoded POST to https://<domain>/api/v2 carrying the
panel secret as `key` and an `action`. Replies are provider-defined JSON
and are turned into a tagged result right here, so callers never inspect
raw payloads for error markers.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

import httpx

from public_api_server.logging_config import log_provider_call


class ProviderFailureKind(str, Enum):
    """Why a provider call did not succeed."""
    PROVIDER = "provider"                  # provider answered with {"error": ...}
    TRANSPORT = "transport"                # network error, timeout, non-2xx
    INVALID_RESPONSE = "invalid_response"  # body was not JSON


@dataclass
class ProviderSuccess:
    data: Any
    success: bool = field(default=True, init=False)


@dataclass
class ProviderFailure:
    kind: ProviderFailureKind
    message: str
    success: bool = field(default=False, init=False)


ProviderResult = Union[ProviderSuccess, ProviderFailure]


class SMMProviderClient:
    """Thin async client over the provider's form-encoded API."""

    def __init__(
        self,
        domain: str,
        api_key: str,
        timeout: float = 30.0,
        scheme: str = "https",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            domain: Provider domain from smm_config
            api_key: Provider secret from smm_config
            timeout: Request timeout in seconds
            scheme: URL scheme
            transport: Optional httpx transport (tests)
        """
        self.api_url = f"{scheme}://{domain.strip().rstrip('/')}/api/v2"
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def _post(self, action: str, **fields: Any) -> ProviderResult:
        form = {"key": self._api_key, "action": action}
        form.update({name: str(value) for name, value in fields.items()})

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, data=form)
                response.raise_for_status()
        except httpx.HTTPError as e:
            result: ProviderResult = ProviderFailure(ProviderFailureKind.TRANSPORT, str(e) or type(e).__name__)
        else:
            result = self._parse(response)

        duration_ms = (time.perf_counter() - start) * 1000
        log_provider_call(
            action=action,
            success=result.success,
            duration_ms=round(duration_ms, 2),
            error=None if result.success else result.message,
        )
        return result

    @staticmethod
    def _parse(response: httpx.Response) -> ProviderResult:
        try:
            data = response.json()
        except ValueError:
            return ProviderFailure(ProviderFailureKind.INVALID_RESPONSE, "Provider returned a non-JSON response")

        if isinstance(data, dict) and data.get("error"):
            return ProviderFailure(ProviderFailureKind.PROVIDER, str(data["error"]))
        return ProviderSuccess(data)

    async def services(self) -> ProviderResult:
        return await self._post("services")

    async def balance(self) -> ProviderResult:
        return await self._post("balance")

    async def add_order(self, service: Union[int, str], link: str, quantity: int) -> ProviderResult:
        return await self._post("add", service=service, link=link, quantity=quantity)

    async def status(self, order_id: Union[int, str]) -> ProviderResult:
        return await self._post("status", order=order_id)

    async def refill(self, order_id: Union[int, str]) -> ProviderResult:
        return await self._post("refill", order=order_id)

    async def cancel(self, order_ids: Iterable[Union[int, str]]) -> ProviderResult:
        return await self._post("cancel", orders=",".join(str(o) for o in order_ids))


def provider_payload(data: Any) -> Dict[str, Any]:
    """Provider replies that are not objects are wrapped so they can be spread."""
    return data if isinstance(data, dict) else {"data": data}
