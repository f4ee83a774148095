"""
Public API gateway.

One call to PublicAPIGateway.handle() processes one HTTP request through a
fixed sequence of stages:

    auth -> IP allow-list -> minute limit -> day limit -> usage warning
         -> key counter update -> routing -> usage log

Each stage assumes the previous ones passed. Requests rejected before
routing (401, 403 from the allow-list, 429) leave no usage row; every
request that reaches routing leaves exactly one, whatever its outcome.

All collaborators (record store, notifier, provider factory, clock) are
injected; the gateway keeps no state between requests.
"""
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from public_api_server.auth import (
    authenticate,
    enforce_ip_allowlist,
    extract_bearer_token,
    resolve_client_ip,
)
from public_api_server.catalog import (
    handle_account_inventory,
    handle_categories,
    handle_flash_sales,
    handle_products,
)
from public_api_server.config import Settings
from public_api_server.context import (
    GatewayRequest,
    GatewayResponse,
    ProviderFactory,
    RequestContext,
)
from public_api_server.errors import INTERNAL_ERROR_BODY, GatewayError, NotFound
from public_api_server.logging_config import get_logger, log_exception, log_usage_warning
from public_api_server.models import ApiKeyRecord, Resource
from public_api_server.notifications import UsageWarningNotifier
from public_api_server.rate_limiting import (
    RateLimitStatus,
    check_rate_limits,
    warning_threshold_crossed,
)
from public_api_server.smm import handle_smm
from public_api_server.smm_provider import SMMProviderClient
from public_api_server.store import RecordStore, eq, utcnow

logger = get_logger("gateway")

UNKNOWN = "unknown"

ResourceHandler = Callable[[RequestContext], Awaitable[Dict[str, Any]]]

_HANDLERS: Dict[Resource, ResourceHandler] = {
    Resource.PRODUCTS: handle_products,
    Resource.CATEGORIES: handle_categories,
    Resource.FLASH_SALES: handle_flash_sales,
    Resource.ACCOUNT_INVENTORY: handle_account_inventory,
    Resource.SMM: handle_smm,
}


def parse_route(path: str, prefix_segment: str = "public-api") -> List[str]:
    """
    Path segments after the prefix segment.

    "/functions/v1/public-api/products/abc" -> ["products", "abc"]
    A path without the prefix is used whole.
    """
    parts = [part for part in path.split("/") if part]
    if prefix_segment in parts:
        parts = parts[parts.index(prefix_segment) + 1:]
    return parts


class PublicAPIGateway:
    """Authenticates, rate limits, routes and logs public API requests."""

    def __init__(
        self,
        store: RecordStore,
        settings: Settings,
        notifier: Optional[UsageWarningNotifier] = None,
        provider_factory: Optional[ProviderFactory] = None,
        clock: Optional[Callable[[], Any]] = None,
    ):
        self.store = store
        self.settings = settings
        self.notifier = notifier or UsageWarningNotifier(
            store,
            settings.notification_url,
            auth_token=settings.notification_auth_token,
            timeout=settings.notification_timeout,
        )
        self.provider_factory = provider_factory or self._default_provider_factory
        self.clock = clock or utcnow
        self.cors_headers = {
            "Access-Control-Allow-Origin": settings.cors_allow_origin,
            "Access-Control-Allow-Headers": settings.cors_allow_headers,
        }

    def _default_provider_factory(self, domain: str, api_key: str) -> SMMProviderClient:
        return SMMProviderClient(
            domain,
            api_key,
            timeout=self.settings.smm_provider_timeout,
            scheme=self.settings.smm_provider_scheme,
        )

    def _json(
        self, status_code: int, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None
    ) -> GatewayResponse:
        return GatewayResponse(
            status_code=int(status_code),
            body=body,
            headers={**self.cors_headers, "Content-Type": "application/json", **(headers or {})},
        )

    def _error(self, error: GatewayError) -> GatewayResponse:
        return self._json(error.status_code, error.to_body(), error.headers)

    async def handle(self, request: GatewayRequest) -> GatewayResponse:
        """Process one request; never raises."""
        if request.method == "OPTIONS":
            return GatewayResponse(status_code=204, body=None, headers=dict(self.cors_headers))

        try:
            return await self._process(request)
        except GatewayError as e:
            return self._error(e)
        except Exception as e:
            log_exception(e, context={"method": request.method, "path": request.path})
            return self._json(500, dict(INTERNAL_ERROR_BODY))

    async def _process(self, request: GatewayRequest) -> GatewayResponse:
        token = extract_bearer_token(request.headers)
        key = await authenticate(self.store, token)

        client_ip = resolve_client_ip(request.headers)
        enforce_ip_allowlist(key, client_ip)

        user_agent = request.header("user-agent") or UNKNOWN
        started = time.perf_counter()
        now = self.clock()

        status = await check_rate_limits(
            self.store,
            key,
            now,
            default_per_minute=self.settings.default_rate_limit_per_minute,
            default_per_day=self.settings.default_rate_limit_per_day,
        )
        self._warn_on_threshold(key, status)
        await self._touch_key(key, now)

        route = parse_route(request.path, self.settings.route_prefix_segment)
        resource = route[0] if route else None
        param = route[1] if len(route) > 1 else None
        logger.info(
            "api_request",
            endpoint=resource,
            param=param,
            api_type=key.api_type_value,
            user_id=key.user_id,
        )

        ctx = RequestContext(
            request=request,
            key=key,
            store=self.store,
            settings=self.settings,
            now=now,
            provider_factory=self.provider_factory,
            param=param,
        )
        response = await self._dispatch(ctx, resource)

        await self._log_usage(
            key,
            endpoint=resource or UNKNOWN,
            method=request.method,
            status_code=response.status_code,
            started=started,
            client_ip=client_ip,
            user_agent=user_agent,
        )
        return response

    async def _dispatch(self, ctx: RequestContext, resource_name: Optional[str]) -> GatewayResponse:
        """Run the resource handler; every outcome becomes a response."""
        try:
            try:
                resource = Resource(resource_name)
            except ValueError:
                raise NotFound("Endpoint not found")
            body = await _HANDLERS[resource](ctx)
            return self._json(200, body)
        except GatewayError as e:
            return self._error(e)
        except Exception as e:
            log_exception(
                e,
                context={
                    "method": ctx.request.method,
                    "path": ctx.request.path,
                    "key_id": ctx.key.id,
                },
            )
            return self._json(500, dict(INTERNAL_ERROR_BODY))

    def _warn_on_threshold(self, key: ApiKeyRecord, status: RateLimitStatus) -> None:
        threshold = warning_threshold_crossed(
            status.day_count, status.day_limit, self.settings.usage_warning_thresholds
        )
        if threshold is None:
            return

        log_usage_warning(key.id, threshold, status.day_count, status.day_limit)
        try:
            self.notifier.dispatch(key, threshold, status.day_count, status.day_limit)
        except Exception as e:
            logger.error("usage_warning_dispatch_failed", key_id=key.id, error=str(e))

    async def _touch_key(self, key: ApiKeyRecord, now) -> None:
        try:
            await self.store.update(
                "user_api_keys",
                {"last_used_at": now, "request_count": key.request_count + 1},
                [eq("id", key.id)],
            )
        except Exception as e:
            logger.warning("api_key_touch_failed", key_id=key.id, error=str(e))

    async def _log_usage(
        self,
        key: ApiKeyRecord,
        endpoint: str,
        method: str,
        status_code: int,
        started: float,
        client_ip: str,
        user_agent: str,
    ) -> None:
        elapsed_ms = int(round((time.perf_counter() - started) * 1000))
        try:
            await self.store.insert(
                "api_usage_logs",
                {
                    "api_key_id": key.id,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "response_time_ms": elapsed_ms,
                    "ip_address": client_ip,
                    "user_agent": user_agent,
                },
            )
        except Exception as e:
            logger.error("usage_log_failed", key_id=key.id, endpoint=endpoint, error=str(e))
