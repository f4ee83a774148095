"""
SQLAlchemy database models for persistent storage.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserAPIKey(Base):
    """API keys issued to tenants."""
    __tablename__ = "user_api_keys"

    id = Column(String(36), primary_key=True, default=_uuid)
    api_key = Column(String(128), unique=True, index=True, nullable=False)
    user_id = Column(String(36), index=True, nullable=False)
    name = Column(String(100), nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    api_type = Column(String(20), nullable=False, default="premium")
    rate_limit_per_minute = Column(Integer, nullable=True)
    rate_limit_per_day = Column(Integer, nullable=True)
    ip_whitelist = Column(Text, nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    request_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_user_api_keys_lookup", "api_key", "is_active", "status"),
    )


class APIUsageLog(Base):
    """One row per request that reached routing; also the rate-limit window."""
    __tablename__ = "api_usage_logs"

    id = Column(String(36), primary_key=True, default=_uuid)
    api_key_id = Column(String(36), ForeignKey("user_api_keys.id"), nullable=False)
    # Client-controlled values, no length limit.
    endpoint = Column(Text, nullable=False)
    method = Column(Text, nullable=False)
    status_code = Column(Integer, nullable=False)
    response_time_ms = Column(Integer, nullable=False)
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("idx_api_usage_logs_window", "api_key_id", "created_at"),
    )


class Profile(Base):
    """Tenant profile holding the spendable balance."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    balance = Column(Numeric(18, 6), default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    name_en = Column(String(200), nullable=True)
    slug = Column(String(200), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    description_en = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    style = Column(String(20), index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    name = Column(String(255), nullable=False)
    name_en = Column(String(255), nullable=True)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    short_description = Column(Text, nullable=True)
    short_description_en = Column(Text, nullable=True)
    price = Column(Numeric(18, 2), nullable=True)
    image_url = Column(Text, nullable=True)
    style = Column(String(20), index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), index=True, nullable=False)
    image_url = Column(Text, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ProductPackage(Base):
    __tablename__ = "product_packages"

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(18, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class FlashSale(Base):
    __tablename__ = "flash_sales"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    banner_url = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class FlashSaleItem(Base):
    __tablename__ = "flash_sale_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    flash_sale_id = Column(String(36), ForeignKey("flash_sales.id"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    package_id = Column(String(36), ForeignKey("product_packages.id"), nullable=True)
    original_price = Column(Numeric(18, 2), nullable=True)
    sale_price = Column(Numeric(18, 2), nullable=False)
    discount_percent = Column(Integer, nullable=True)
    quantity_limit = Column(Integer, nullable=True)
    quantity_sold = Column(Integer, default=0, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class GameAccountInventory(Base):
    __tablename__ = "game_account_inventory"

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), index=True, nullable=False)
    account_data = Column(Text, nullable=False)
    status = Column(String(20), default="available", nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_inventory_availability", "product_id", "status"),
    )


class SMMConfig(Base):
    """Upstream provider credentials; one active row."""
    __tablename__ = "smm_config"

    id = Column(String(36), primary_key=True, default=_uuid)
    api_domain = Column(String(255), nullable=False)
    api_key = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class SMMService(Base):
    __tablename__ = "smm_services"

    id = Column(String(36), primary_key=True, default=_uuid)
    external_service_id = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    rate = Column(Numeric(18, 6), nullable=False)
    markup_percent = Column(Numeric(8, 2), default=0, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class SMMOrder(Base):
    __tablename__ = "smm_orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), index=True, nullable=False)
    service_id = Column(String(36), ForeignKey("smm_services.id"), nullable=True)
    order_number = Column(String(32), unique=True, nullable=False)
    external_order_id = Column(String(64), nullable=True)
    link = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    charge = Column(Numeric(18, 6), nullable=False)
    status = Column(String(20), default="Pending", nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class WalletTransaction(Base):
    """Balance ledger written alongside every deduction."""
    __tablename__ = "wallet_transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), index=True, nullable=False)
    amount = Column(Numeric(18, 6), nullable=False)
    type = Column(String(32), nullable=False)
    reference_type = Column(String(32), nullable=True)
    reference_id = Column(String(36), nullable=True)
    note = Column(Text, nullable=True)
    status = Column(String(20), default="completed", nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
