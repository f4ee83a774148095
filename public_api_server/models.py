"""
Pydantic models and enumerations for the public API.

Key records come out of the record store as plain dicts and are parsed
here once, so the rest of the gateway works with typed values.
"""

import secrets
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

APPROVED_STATUS = "approved"
ORDER_NUMBER_PREFIX = "SMM-"
ORDER_NUMBER_SUFFIX_LENGTH = 4
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class ApiType(str, Enum):
    """Tenant type of an API key."""
    PREMIUM = "premium"
    GAME_ACCOUNT = "game_account"
    GAME_TOPUP = "game_topup"
    SMM = "smm"


class ProductStyle(str, Enum):
    """Style tag carried by products and categories."""
    PREMIUM = "premium"
    GAME_ACCOUNT = "game_account"
    GAME_TOPUP = "game_topup"


class Resource(str, Enum):
    """Top-level resources served by the gateway."""
    PRODUCTS = "products"
    CATEGORIES = "categories"
    FLASH_SALES = "flash-sales"
    ACCOUNT_INVENTORY = "account-inventory"
    SMM = "smm"


class SmmAction(str, Enum):
    """Sub-actions under smm/."""
    SERVICES = "services"
    BALANCE = "balance"
    ORDER = "order"
    STATUS = "status"
    REFILL = "refill"


_STYLE_BY_API_TYPE = {
    ApiType.PREMIUM: ProductStyle.PREMIUM,
    ApiType.GAME_ACCOUNT: ProductStyle.GAME_ACCOUNT,
    ApiType.GAME_TOPUP: ProductStyle.GAME_TOPUP,
}


def style_for_api_type(api_type: Optional[ApiType]) -> Optional[ProductStyle]:
    """Product style visible to a key type; None means no style filter."""
    return _STYLE_BY_API_TYPE.get(api_type)


def category_style_for_api_type(api_type: Optional[ApiType]) -> ProductStyle:
    """Categories only come in premium and game_account flavours."""
    if api_type is ApiType.PREMIUM:
        return ProductStyle.PREMIUM
    return ProductStyle.GAME_ACCOUNT


class ApiKeyRecord(BaseModel):
    """A row of user_api_keys."""

    model_config = ConfigDict(extra="ignore")

    id: str
    api_key: str
    user_id: str
    name: str = ""
    is_active: bool = False
    status: str = "pending"
    api_type: Optional[ApiType] = None
    rate_limit_per_minute: Optional[int] = None
    rate_limit_per_day: Optional[int] = None
    ip_whitelist: Optional[str] = None
    last_used_at: Optional[datetime] = None
    request_count: int = 0

    @field_validator("api_type", mode="before")
    @classmethod
    def parse_api_type(cls, v: Any) -> Optional[ApiType]:
        """Unknown types become None instead of failing the whole record."""
        if v is None or isinstance(v, ApiType):
            return v
        try:
            return ApiType(v)
        except ValueError:
            return None

    @field_validator("request_count", mode="before")
    @classmethod
    def default_request_count(cls, v: Any) -> int:
        return v or 0

    @property
    def is_usable(self) -> bool:
        """Only active AND approved keys may authenticate."""
        return self.is_active and self.status == APPROVED_STATUS

    @property
    def allowed_ips(self) -> List[str]:
        """Parsed IP allow-list; empty means every address is allowed."""
        if not self.ip_whitelist:
            return []
        return [ip.strip() for ip in self.ip_whitelist.split(",") if ip.strip()]

    @property
    def style(self) -> Optional[ProductStyle]:
        return style_for_api_type(self.api_type)

    @property
    def api_type_value(self) -> Optional[str]:
        return self.api_type.value if self.api_type else None


class SmmOrderRequest(BaseModel):
    """Body of POST smm/order."""
    service: Union[int, str]
    link: str = Field(..., min_length=1, max_length=2048)
    quantity: int = Field(..., gt=0)

    @field_validator("link")
    @classmethod
    def strip_link(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("link must not be blank")
        return v


class SmmRefillRequest(BaseModel):
    """Body of POST smm/refill."""
    order_id: Union[int, str]


class SmmServicePricing(BaseModel):
    """Pricing of an SMM service; rate is per 1000 units."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    external_service_id: str
    rate: Decimal
    markup_percent: Decimal = Decimal("0")

    @field_validator("external_service_id", mode="before")
    @classmethod
    def coerce_external_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("rate", "markup_percent", mode="before")
    @classmethod
    def coerce_decimal(cls, v: Any) -> Decimal:
        if v is None:
            return Decimal("0")
        return Decimal(str(v))

    @property
    def final_rate(self) -> Decimal:
        return self.rate * (1 + self.markup_percent / 100)

    def charge_for(self, quantity: int) -> Decimal:
        """final_rate / 1000 * quantity"""
        return self.final_rate / 1000 * quantity


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_order_number(now: datetime) -> str:
    """
    SMM-<epoch milliseconds in base36><random base36 suffix>, upper case.

    The suffix keeps numbers unique when two orders share a millisecond.
    """
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36_DIGITS) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH))
    return f"{ORDER_NUMBER_PREFIX}{to_base36(millis)}{suffix}".upper()


def money_to_json(value: Any) -> Union[int, float]:
    """Render an amount as a JSON number, integral amounts as ints."""
    amount = value if isinstance(value, Decimal) else Decimal(str(value or 0))
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)
