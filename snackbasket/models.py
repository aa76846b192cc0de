from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only autoincrements INTEGER primary keys.
BigIntPK = BigInteger().with_variant(Integer(), 'sqlite')
Money = Numeric(12, 2)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    pass


class UserRole(str, Enum):
    ADMIN = 'admin'
    EMPLOYEE = 'employee'


class ShopCategory(str, Enum):
    RETAILER = 'retailer'
    WHOLESALER = 'wholesaler'


class DeliveryStatus(str, Enum):
    PACKAGING = 'Packaging'
    TRANSIT = 'Transit'
    SHIP_TO_OUTLET = 'ShipToOutlet'
    OUT_FOR_DELIVERY = 'OutForDelivery'
    DELIVERED = 'Delivered'


class ReturnReason(str, Enum):
    DAMAGED = 'DAMAGED'
    EXPIRED = 'EXPIRED'
    WRONG_ITEM = 'WRONG_ITEM'
    QUALITY_ISSUE = 'QUALITY_ISSUE'
    OTHER = 'OTHER'


class User(Base):
    __tablename__ = 'users'
    __table_args__ = (UniqueConstraint('email', name='users_email_key'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name='user_role', values_callable=_enum_values),
        nullable=False,
        default=UserRole.EMPLOYEE,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    password_hash: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )


class Shop(Base):
    __tablename__ = 'shops'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    phone_number: Mapped[str] = mapped_column(String(40), nullable=False)
    category: Mapped[ShopCategory] = mapped_column(
        SQLEnum(ShopCategory, name='shop_category', values_callable=_enum_values), nullable=False
    )
    is_new: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    created_by_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )


class Sku(Base):
    __tablename__ = 'skus'
    __table_args__ = (
        CheckConstraint('price >= 0', name='skus_price_non_negative'),
        CheckConstraint('box_price >= 0', name='skus_box_price_non_negative'),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    box_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    cost_per_unit: Mapped[Decimal] = mapped_column(Money, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')


class Order(Base):
    __tablename__ = 'orders'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    shop_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('shops.id'), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_code: Mapped[str | None] = mapped_column(Text)
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    final_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    created_by_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )

    lines: Mapped[list[OrderLine]] = relationship(
        back_populates='order', cascade='all, delete-orphan', order_by='OrderLine.position'
    )


class OrderLine(Base):
    __tablename__ = 'order_lines'
    __table_args__ = (CheckConstraint('quantity > 0', name='order_lines_quantity_positive'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sku_id: Mapped[str] = mapped_column(String(32), ForeignKey('skus.id'), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Money, nullable=False)

    order: Mapped[Order] = relationship(back_populates='lines')
    sku: Mapped[Sku] = relationship(lazy='joined')


class ReturnOrder(Base):
    __tablename__ = 'return_orders'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    shop_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('shops.id'), nullable=False)
    linked_order_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('orders.id', ondelete='SET NULL'))
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reason_code: Mapped[ReturnReason | None] = mapped_column(
        SQLEnum(ReturnReason, name='return_reason', values_callable=_enum_values)
    )
    notes: Mapped[str | None] = mapped_column(Text)
    created_by_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )

    lines: Mapped[list[ReturnOrderLine]] = relationship(
        back_populates='return_order', cascade='all, delete-orphan', order_by='ReturnOrderLine.position'
    )


class ReturnOrderLine(Base):
    __tablename__ = 'return_order_lines'
    __table_args__ = (CheckConstraint('quantity > 0', name='return_order_lines_quantity_positive'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    return_order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('return_orders.id', ondelete='CASCADE'), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sku_id: Mapped[str] = mapped_column(String(32), ForeignKey('skus.id'), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Money, nullable=False)

    return_order: Mapped[ReturnOrder] = relationship(back_populates='lines')
    sku: Mapped[Sku] = relationship(lazy='joined')


class Delivery(Base):
    __tablename__ = 'deliveries'
    __table_args__ = (UniqueConstraint('order_id', name='deliveries_order_id_key'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    shop_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('shops.id'), nullable=False)
    status: Mapped[DeliveryStatus] = mapped_column(
        SQLEnum(DeliveryStatus, name='delivery_status', values_callable=_enum_values),
        nullable=False,
        default=DeliveryStatus.PACKAGING,
    )
    current_location: Mapped[str | None] = mapped_column(Text)
    estimated_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    tracking_number: Mapped[str | None] = mapped_column(String(32))
    delivery_notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )

    status_history: Mapped[list[DeliveryStatusUpdate]] = relationship(
        back_populates='delivery', cascade='all, delete-orphan', order_by='DeliveryStatusUpdate.id'
    )


class DeliveryStatusUpdate(Base):
    __tablename__ = 'delivery_status_updates'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    delivery_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('deliveries.id', ondelete='CASCADE'), nullable=False
    )
    status: Mapped[DeliveryStatus] = mapped_column(
        SQLEnum(DeliveryStatus, name='delivery_status', values_callable=_enum_values), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    notes: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(Text)
    updated_by: Mapped[str | None] = mapped_column(Text)

    delivery: Mapped[Delivery] = relationship(back_populates='status_history')


class Survey(Base):
    __tablename__ = 'surveys'
    __table_args__ = (
        CheckConstraint('product_quality BETWEEN 1 AND 5', name='surveys_product_quality_range'),
        CheckConstraint('pricing BETWEEN 1 AND 5', name='surveys_pricing_range'),
        CheckConstraint('delivery_experience BETWEEN 1 AND 5', name='surveys_delivery_experience_range'),
        CheckConstraint('packaging BETWEEN 1 AND 5', name='surveys_packaging_range'),
        CheckConstraint('overall_satisfaction BETWEEN 1 AND 5', name='surveys_overall_satisfaction_range'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    shop_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('shops.id', ondelete='SET NULL'))
    respondent_name: Mapped[str] = mapped_column(Text, nullable=False)
    respondent_phone: Mapped[str | None] = mapped_column(String(40))
    product_quality: Mapped[int] = mapped_column(Integer, nullable=False)
    pricing: Mapped[int] = mapped_column(Integer, nullable=False)
    delivery_experience: Mapped[int] = mapped_column(Integer, nullable=False)
    packaging: Mapped[int] = mapped_column(Integer, nullable=False)
    overall_satisfaction: Mapped[int] = mapped_column(Integer, nullable=False)
    feedback: Mapped[str | None] = mapped_column(Text)
    concerns: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_by_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    attempted_email: Mapped[str] = mapped_column(String(320), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id', ondelete='SET NULL'))
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    actor_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id', ondelete='SET NULL'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (UniqueConstraint('session_token', name='web_sessions_session_token_key'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
