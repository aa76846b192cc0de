"""JSON shapes for the ``/api`` routes.

Storage columns are snake_case; the API speaks camelCase (``shopId``,
``orderItems``, ``statusHistory``). Every schema inherits the alias generator
from ``ApiModel`` so both spellings are accepted on input and camelCase is
emitted on output.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from snackbasket.models import Delivery, Order, ReturnOrder, Survey
from snackbasket.services.delivery_service import STATUS_LABELS, get_next_status
from snackbasket.services.time_utils import as_utc

MoneyOut = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used='json')]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SkuOut(ApiModel):
    id: str
    name: str
    description: str
    price: MoneyOut
    box_price: MoneyOut
    cost_per_unit: MoneyOut


class ShopIn(ApiModel):
    name: str
    location: str
    phone_number: str
    category: str
    latitude: float | None = None
    longitude: float | None = None


class ShopOut(ApiModel):
    id: int
    name: str
    location: str
    phone_number: str
    category: str
    is_new: bool
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime


class LineItemIn(ApiModel):
    sku_id: str
    quantity: int = Field(gt=0)


class LineItemOut(ApiModel):
    sku: SkuOut
    quantity: int
    unit_price: MoneyOut
    line_total: MoneyOut


class OrderIn(ApiModel):
    shop_id: int
    order_items: list[LineItemIn]
    discount_code: str | None = None


class DiscountIn(ApiModel):
    discount_code: str


class OrderOut(ApiModel):
    id: int
    shop_id: int
    order_items: list[LineItemOut]
    total_amount: MoneyOut
    discount_code: str | None = None
    discount_amount: MoneyOut
    final_amount: MoneyOut
    created_at: datetime
    delivery_id: int | None = None


class ReturnOrderIn(ApiModel):
    shop_id: int
    return_items: list[LineItemIn]
    linked_order_id: int | None = None
    reason_code: str | None = None
    notes: str | None = None


class ReturnOrderOut(ApiModel):
    id: int
    shop_id: int
    linked_order_id: int | None = None
    return_items: list[LineItemOut]
    total_amount: MoneyOut
    reason_code: str | None = None
    notes: str | None = None
    created_at: datetime


class StatusUpdateOut(ApiModel):
    status: str
    timestamp: datetime
    notes: str | None = None
    location: str | None = None
    updated_by: str | None = None


class DeliveryIn(ApiModel):
    order_id: int
    status: str = 'Packaging'
    current_location: str | None = None
    estimated_delivery_date: datetime | None = None
    tracking_number: str | None = None
    delivery_notes: str | None = None


class DeliveryAdvanceIn(ApiModel):
    status: str
    notes: str | None = None
    location: str | None = None


class DeliveryOut(ApiModel):
    id: int
    order_id: int
    shop_id: int
    status: str
    status_label: str
    next_status: str | None = None
    current_location: str | None = None
    estimated_delivery_date: datetime | None = None
    actual_delivery_date: datetime | None = None
    tracking_number: str | None = None
    delivery_notes: str | None = None
    status_history: list[StatusUpdateOut]
    created_at: datetime
    updated_at: datetime


class SurveyIn(ApiModel):
    respondent_name: str
    shop_id: int | None = None
    respondent_phone: str | None = None
    product_quality: int
    pricing: int
    delivery_experience: int
    packaging: int
    overall_satisfaction: int
    feedback: str | None = None
    concerns: list[str] = Field(default_factory=list)


class SurveyOut(ApiModel):
    id: int
    shop_id: int | None = None
    respondent_name: str
    respondent_phone: str | None = None
    product_quality: int
    pricing: int
    delivery_experience: int
    packaging: int
    overall_satisfaction: int
    feedback: str | None = None
    concerns: list[str]
    created_at: datetime


class UserOut(ApiModel):
    id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


def sku_to_schema(sku) -> SkuOut:
    return SkuOut(
        id=sku.id,
        name=sku.name,
        description=sku.description,
        price=sku.price,
        box_price=sku.box_price,
        cost_per_unit=sku.cost_per_unit,
    )


def _line_out(line) -> LineItemOut:
    return LineItemOut(
        sku=sku_to_schema(line.sku),
        quantity=line.quantity,
        unit_price=line.unit_price,
        line_total=line.line_total,
    )


def shop_to_schema(shop) -> ShopOut:
    return ShopOut(
        id=shop.id,
        name=shop.name,
        location=shop.location,
        phone_number=shop.phone_number,
        category=shop.category.value,
        is_new=shop.is_new,
        latitude=shop.latitude,
        longitude=shop.longitude,
        created_at=as_utc(shop.created_at),
    )


def order_to_schema(order: Order, *, delivery_id: int | None = None) -> OrderOut:
    return OrderOut(
        id=order.id,
        shop_id=order.shop_id,
        order_items=[_line_out(line) for line in order.lines],
        total_amount=order.total_amount,
        discount_code=order.discount_code,
        discount_amount=order.discount_amount,
        final_amount=order.final_amount,
        created_at=as_utc(order.created_at),
        delivery_id=delivery_id,
    )


def return_order_to_schema(return_order: ReturnOrder) -> ReturnOrderOut:
    return ReturnOrderOut(
        id=return_order.id,
        shop_id=return_order.shop_id,
        linked_order_id=return_order.linked_order_id,
        return_items=[_line_out(line) for line in return_order.lines],
        total_amount=return_order.total_amount,
        reason_code=return_order.reason_code.value if return_order.reason_code else None,
        notes=return_order.notes,
        created_at=as_utc(return_order.created_at),
    )


def delivery_to_schema(delivery: Delivery) -> DeliveryOut:
    next_status = get_next_status(delivery.status)
    return DeliveryOut(
        id=delivery.id,
        order_id=delivery.order_id,
        shop_id=delivery.shop_id,
        status=delivery.status.value,
        status_label=STATUS_LABELS[delivery.status],
        next_status=next_status.value if next_status else None,
        current_location=delivery.current_location,
        estimated_delivery_date=as_utc(delivery.estimated_delivery_date) if delivery.estimated_delivery_date else None,
        actual_delivery_date=as_utc(delivery.actual_delivery_date) if delivery.actual_delivery_date else None,
        tracking_number=delivery.tracking_number,
        delivery_notes=delivery.delivery_notes,
        status_history=[
            StatusUpdateOut(
                status=entry.status.value,
                timestamp=as_utc(entry.timestamp),
                notes=entry.notes,
                location=entry.location,
                updated_by=entry.updated_by,
            )
            for entry in delivery.status_history
        ],
        created_at=as_utc(delivery.created_at),
        updated_at=as_utc(delivery.updated_at),
    )


def survey_to_schema(survey: Survey) -> SurveyOut:
    return SurveyOut(
        id=survey.id,
        shop_id=survey.shop_id,
        respondent_name=survey.respondent_name,
        respondent_phone=survey.respondent_phone,
        product_quality=survey.product_quality,
        pricing=survey.pricing,
        delivery_experience=survey.delivery_experience,
        packaging=survey.packaging,
        overall_satisfaction=survey.overall_satisfaction,
        feedback=survey.feedback,
        concerns=list(survey.concerns or []),
        created_at=as_utc(survey.created_at),
    )


def user_to_schema(user) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        is_active=user.is_active,
        created_at=as_utc(user.created_at),
        updated_at=as_utc(user.updated_at),
    )
