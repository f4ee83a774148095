"""
SMM resale endpoints: smm/services, smm/balance, smm/order, smm/status, smm/refill.

Orders are priced from smm_services (rate per 1000 units plus markup),
checked against the tenant's balance, placed with the provider, and then
committed by the store's create_smm_order_with_balance procedure, which
deducts the balance and inserts the order in one transaction.

If that commit fails after the provider accepted the order, the provider
order is orphaned. It is logged and, unless disabled, a best-effort
cancel is sent to the provider. The caller still receives the commit error.
"""
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict

from pydantic import ValidationError

from public_api_server.context import RequestContext
from public_api_server.errors import BadRequest, Forbidden, InternalError, MethodNotAllowed, NotFound
from public_api_server.logging_config import get_logger
from public_api_server.models import (
    ApiType,
    SmmAction,
    SmmOrderRequest,
    SmmRefillRequest,
    SmmServicePricing,
    generate_order_number,
    money_to_json,
)
from public_api_server.smm_provider import (
    ProviderFailure,
    ProviderFailureKind,
    ProviderResult,
    ProviderSuccess,
    SMMProviderClient,
    provider_payload,
)
from public_api_server.store import CREATE_SMM_ORDER_PROCEDURE, eq, utcnow

logger = get_logger("smm")

ORDER_FIELDS = ("service", "link", "quantity")
UNKNOWN_ACTION_MESSAGE = (
    "SMM endpoint not found. Available: " + ", ".join(action.value for action in SmmAction)
)
INITIAL_ORDER_STATUS = "Pending"

ActionHandler = Callable[[RequestContext, SMMProviderClient], Awaitable[Dict[str, Any]]]


def _unwrap(result: ProviderResult) -> Any:
    """Provider-reported errors are the caller's problem (400); anything else is ours (500)."""
    if isinstance(result, ProviderSuccess):
        return result.data
    if result.kind is ProviderFailureKind.PROVIDER:
        raise BadRequest(result.message)
    raise InternalError("SMM provider request failed")


def _passthrough(result: ProviderResult) -> Any:
    """
    Reply data for read-only actions.

    A provider-reported error is handed back to the caller as the provider's
    own {"error": ...} payload with a 200; only transport failures are ours.
    """
    if isinstance(result, ProviderFailure) and result.kind is ProviderFailureKind.PROVIDER:
        return {"error": result.message}
    return _unwrap(result)


def _require_post(ctx: RequestContext) -> None:
    if ctx.request.method != "POST":
        raise MethodNotAllowed("Method not allowed. Use POST.")


def _json_object(ctx: RequestContext) -> Dict[str, Any]:
    body = ctx.request.json()
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body


def _validation_details(error: ValidationError):
    return [
        {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]


async def handle_smm(ctx: RequestContext) -> Dict[str, Any]:
    """Dispatch smm/<action> for smm-type keys."""
    if ctx.key.api_type is not ApiType.SMM:
        raise Forbidden("Endpoint only available for SMM API type")

    config = await ctx.store.select_one("smm_config", [eq("is_active", True)])
    if not config:
        raise InternalError("SMM service not configured")

    try:
        action = SmmAction(ctx.param)
    except ValueError:
        raise NotFound(UNKNOWN_ACTION_MESSAGE)

    provider = ctx.provider_factory(config["api_domain"], config["api_key"])
    return await _ACTIONS[action](ctx, provider)


async def _services(ctx: RequestContext, provider: SMMProviderClient) -> Dict[str, Any]:
    return {"success": True, "data": _passthrough(await provider.services())}


async def _balance(ctx: RequestContext, provider: SMMProviderClient) -> Dict[str, Any]:
    data = provider_payload(_unwrap(await provider.balance()))
    return {
        "success": True,
        "balance": data.get("balance"),
        "currency": data.get("currency") or "USD",
    }


async def _order(ctx: RequestContext, provider: SMMProviderClient) -> Dict[str, Any]:
    _require_post(ctx)
    body = _json_object(ctx)

    if any(not body.get(name) for name in ORDER_FIELDS):
        raise BadRequest("Missing required fields: service, link, quantity")
    try:
        order = SmmOrderRequest.model_validate(body)
    except ValidationError as e:
        raise BadRequest("Invalid order request", extra={"details": _validation_details(e)})

    service_row = await ctx.store.select_one(
        "smm_services", [eq("external_service_id", str(order.service))]
    )
    if not service_row:
        raise NotFound("Service not found")

    pricing = SmmServicePricing.model_validate(service_row)
    charge = pricing.charge_for(order.quantity)

    # Balance is checked before the provider is contacted; the commit below
    # re-checks it atomically.
    profile = await ctx.store.select_one("profiles", [eq("user_id", ctx.key.user_id)])
    available = Decimal(str((profile or {}).get("balance") or 0))
    if available < charge:
        raise BadRequest(
            "Insufficient balance",
            extra={"required": money_to_json(charge), "available": money_to_json(available)},
        )

    placed = provider_payload(
        _unwrap(await provider.add_order(order.service, order.link, order.quantity))
    )
    external_order_id = placed.get("order")
    if external_order_id is None:
        logger.error("smm_order_missing_external_id", response=placed)
        raise InternalError("SMM provider request failed")

    # Stamped when the order is committed, not when the request arrived.
    order_number = generate_order_number(utcnow())
    params = {
        "p_user_id": ctx.key.user_id,
        "p_charge": charge,
        "p_external_order_id": external_order_id,
        "p_service_id": pricing.id,
        "p_link": order.link,
        "p_quantity": order.quantity,
        "p_order_number": order_number,
    }

    try:
        outcome = await ctx.store.call(CREATE_SMM_ORDER_PROCEDURE, params)
    except Exception as e:
        logger.error("smm_order_commit_error", order_number=order_number, error=str(e))
        await _compensate(ctx, provider, external_order_id, order_number)
        raise InternalError("Failed to process order")

    if not outcome.get("success"):
        await _compensate(ctx, provider, external_order_id, order_number)
        raise BadRequest(outcome.get("error") or "Failed to create order")

    logger.info(
        "smm_order_created",
        order_number=order_number,
        external_order_id=external_order_id,
        user_id=ctx.key.user_id,
        charge=str(charge),
    )
    return {
        "success": True,
        "order_id": order_number,
        "external_order_id": external_order_id,
        "charge": money_to_json(charge),
        "status": INITIAL_ORDER_STATUS,
    }


async def _compensate(
    ctx: RequestContext,
    provider: SMMProviderClient,
    external_order_id: Any,
    order_number: str,
) -> None:
    """Report an order the provider holds but we never committed, and try to cancel it."""
    logger.error(
        "smm_order_orphaned",
        order_number=order_number,
        external_order_id=external_order_id,
        user_id=ctx.key.user_id,
    )
    if not ctx.settings.smm_cancel_on_commit_failure:
        return

    try:
        result = await provider.cancel([external_order_id])
    except Exception as e:
        logger.error("smm_order_cancel_failed", external_order_id=external_order_id, error=str(e))
        return

    if result.success:
        logger.info("smm_order_cancelled", external_order_id=external_order_id)
    else:
        logger.error(
            "smm_order_cancel_failed",
            external_order_id=external_order_id,
            error=result.message,
        )


async def _status(ctx: RequestContext, provider: SMMProviderClient) -> Dict[str, Any]:
    order_id = ctx.query.get("order_id")
    if not order_id:
        raise BadRequest("order_id is required")

    data = provider_payload(_passthrough(await provider.status(order_id)))
    return {**data, "success": True}


async def _refill(ctx: RequestContext, provider: SMMProviderClient) -> Dict[str, Any]:
    _require_post(ctx)
    body = _json_object(ctx)
    if not body.get("order_id"):
        raise BadRequest("order_id is required")
    try:
        refill = SmmRefillRequest.model_validate(body)
    except ValidationError as e:
        raise BadRequest("Invalid refill request", extra={"details": _validation_details(e)})

    data = provider_payload(_unwrap(await provider.refill(refill.order_id)))
    return {"success": True, "refill_id": data.get("refill")}


_ACTIONS: Dict[SmmAction, ActionHandler] = {
    SmmAction.SERVICES: _services,
    SmmAction.BALANCE: _balance,
    SmmAction.ORDER: _order,
    SmmAction.STATUS: _status,
    SmmAction.REFILL: _refill,
}
