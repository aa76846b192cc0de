from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from snackbasket.config import settings
from snackbasket.models import Order, OrderLine, ReturnOrder, ReturnOrderLine, ReturnReason, Sku
from snackbasket.services.catalog_service import get_skus_by_ids
from snackbasket.services.errors import NotFoundError, ValidationFailure
from snackbasket.services.shop_service import get_shop
from snackbasket.services.time_utils import now_utc

logger = logging.getLogger(__name__)

WHOLE_UNIT = Decimal('1')


@dataclass(frozen=True)
class LineItemInput:
    sku_id: str
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    sku: Sku
    quantity: int

    @property
    def unit_price(self) -> Decimal:
        return Decimal(self.sku.price)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class OrderTotals:
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal


def compute_total(lines: list[PricedLine]) -> Decimal:
    # Box pricing is carried on the SKU but orders are always priced per unit.
    return sum((line.line_total for line in lines), Decimal('0'))


def compute_discount(total_amount: Decimal, discount_code: str | None) -> Decimal:
    if not discount_code or not discount_code.strip():
        return Decimal('0')
    return (Decimal(total_amount) * settings.discount_rate).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def compute_order_totals(lines: list[PricedLine], discount_code: str | None) -> OrderTotals:
    total = compute_total(lines)
    discount = compute_discount(total, discount_code)
    return OrderTotals(total_amount=total, discount_amount=discount, final_amount=total - discount)


def _clean_code(discount_code: str | None) -> str | None:
    if discount_code and discount_code.strip():
        return discount_code.strip()
    return None


def _price_lines(db: Session, items: list[LineItemInput]) -> list[PricedLine]:
    if not items:
        raise ValidationFailure('Add at least one line item')
    for item in items:
        if not isinstance(item.quantity, int) or item.quantity <= 0:
            raise ValidationFailure(f'Quantity must be a positive whole number for {item.sku_id}')

    skus = get_skus_by_ids(db, [item.sku_id for item in items])
    missing = sorted({item.sku_id for item in items if item.sku_id not in skus})
    if missing:
        raise ValidationFailure(f"Unknown SKU: {', '.join(missing)}")
    return [PricedLine(sku=skus[item.sku_id], quantity=item.quantity) for item in items]


def parse_reason(value: str | None) -> ReturnReason | None:
    raw = (value or '').strip().upper()
    if not raw:
        return None
    try:
        return ReturnReason(raw)
    except ValueError as exc:
        raise ValidationFailure(f'Unknown return reason: {value}') from exc


def create_order(
    db: Session,
    *,
    shop_id: int,
    items: list[LineItemInput],
    discount_code: str | None = None,
    created_by_user_id: int | None = None,
) -> Order:
    get_shop(db, shop_id)
    priced = _price_lines(db, items)
    code = _clean_code(discount_code)
    totals = compute_order_totals(priced, code)

    order = Order(
        shop_id=shop_id,
        total_amount=totals.total_amount,
        discount_code=code,
        discount_amount=totals.discount_amount,
        final_amount=totals.final_amount,
        created_by_user_id=created_by_user_id,
        created_at=now_utc(),
    )
    for position, line in enumerate(priced):
        order.lines.append(
            OrderLine(
                position=position,
                sku_id=line.sku.id,
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
        )
    db.add(order)
    db.flush()
    logger.info('Created order %s for shop %s: final=%s', order.id, shop_id, order.final_amount)
    return order


def get_order(db: Session, order_id: int) -> Order:
    order = db.execute(select(Order).where(Order.id == order_id)).scalar_one_or_none()
    if not order:
        raise NotFoundError('Order not found')
    return order


def list_orders(db: Session, *, shop_id: int | None = None) -> list[Order]:
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if shop_id:
        query = query.where(Order.shop_id == shop_id)
    return db.execute(query).scalars().all()


def apply_discount(db: Session, *, order_id: int, discount_code: str) -> Order:
    order = get_order(db, order_id)
    code = _clean_code(discount_code)
    if not code:
        raise ValidationFailure('Discount code is required')

    discount = compute_discount(order.total_amount, code)
    order.discount_code = code
    order.discount_amount = discount
    order.final_amount = Decimal(order.total_amount) - discount
    db.flush()
    return order


def create_return_order(
    db: Session,
    *,
    shop_id: int,
    items: list[LineItemInput],
    linked_order_id: int | None = None,
    reason_code: str | None = None,
    notes: str | None = None,
    created_by_user_id: int | None = None,
) -> ReturnOrder:
    get_shop(db, shop_id)
    if linked_order_id is not None:
        get_order(db, linked_order_id)
    priced = _price_lines(db, items)

    return_order = ReturnOrder(
        shop_id=shop_id,
        linked_order_id=linked_order_id,
        total_amount=compute_total(priced),
        reason_code=parse_reason(reason_code),
        notes=notes.strip() if notes and notes.strip() else None,
        created_by_user_id=created_by_user_id,
        created_at=now_utc(),
    )
    for position, line in enumerate(priced):
        return_order.lines.append(
            ReturnOrderLine(
                position=position,
                sku_id=line.sku.id,
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
        )
    db.add(return_order)
    db.flush()
    logger.info('Created return order %s for shop %s: total=%s', return_order.id, shop_id, return_order.total_amount)
    return return_order


def get_return_order(db: Session, return_order_id: int) -> ReturnOrder:
    return_order = db.execute(select(ReturnOrder).where(ReturnOrder.id == return_order_id)).scalar_one_or_none()
    if not return_order:
        raise NotFoundError('Return order not found')
    return return_order


def list_return_orders(db: Session, *, shop_id: int | None = None) -> list[ReturnOrder]:
    query = select(ReturnOrder).order_by(ReturnOrder.created_at.desc(), ReturnOrder.id.desc())
    if shop_id:
        query = query.where(ReturnOrder.shop_id == shop_id)
    return db.execute(query).scalars().all()
