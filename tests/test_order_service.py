from __future__ import annotations

import unittest
from decimal import Decimal
from types import SimpleNamespace

from support import add_shop, seeded_session

from snackbasket.models import ReturnReason
from snackbasket.services.errors import NotFoundError, ValidationFailure
from snackbasket.services.order_service import (
    LineItemInput,
    PricedLine,
    apply_discount,
    compute_discount,
    compute_order_totals,
    create_order,
    create_return_order,
    get_order,
    list_orders,
)


def _priced(price: str, quantity: int) -> PricedLine:
    return PricedLine(sku=SimpleNamespace(id='SKU-X', price=Decimal(price)), quantity=quantity)


class OrderTotalsTests(unittest.TestCase):
    def test_discount_code_takes_ten_percent(self) -> None:
        totals = compute_order_totals([_priced('250', 1)], 'SAVE10')

        self.assertEqual(totals.total_amount, Decimal('250'))
        self.assertEqual(totals.discount_amount, Decimal('25'))
        self.assertEqual(totals.final_amount, Decimal('225'))

    def test_mixed_lines_with_code(self) -> None:
        totals = compute_order_totals([_priced('100', 2), _priced('50', 1)], 'X')

        self.assertEqual(
            (totals.total_amount, totals.discount_amount, totals.final_amount),
            (Decimal('250'), Decimal('25'), Decimal('225')),
        )

    def test_discount_rounds_half_up_to_whole_units(self) -> None:
        totals = compute_order_totals([_priced('115', 3)], 'ANY')

        self.assertEqual(totals.total_amount, Decimal('345'))
        self.assertEqual(totals.discount_amount, Decimal('35'))
        self.assertEqual(totals.final_amount, Decimal('310'))

    def test_blank_code_gives_no_discount(self) -> None:
        self.assertEqual(compute_discount(Decimal('500'), None), Decimal('0'))
        self.assertEqual(compute_discount(Decimal('500'), '   '), Decimal('0'))

    def test_total_sums_every_line(self) -> None:
        totals = compute_order_totals([_priced('250', 2), _priced('150', 1)], None)

        self.assertEqual(totals.total_amount, Decimal('650'))
        self.assertEqual(totals.final_amount, Decimal('650'))


class OrderServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = seeded_session()
        self.shop = add_shop(self.db)
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_create_order_prices_lines_from_catalog(self) -> None:
        order = create_order(
            self.db,
            shop_id=self.shop.id,
            items=[LineItemInput('SKU002', 1), LineItemInput('SKU001', 2)],
            discount_code='WELCOME',
        )
        self.db.commit()

        stored = get_order(self.db, order.id)
        self.assertEqual([line.sku_id for line in stored.lines], ['SKU002', 'SKU001'])
        self.assertEqual(stored.lines[1].line_total, Decimal('500'))
        self.assertEqual(stored.total_amount, Decimal('850'))
        self.assertEqual(stored.discount_amount, Decimal('85'))
        self.assertEqual(stored.final_amount, Decimal('765'))
        self.assertEqual(stored.discount_code, 'WELCOME')

    def test_create_order_rejects_bad_input(self) -> None:
        with self.assertRaises(ValidationFailure):
            create_order(self.db, shop_id=self.shop.id, items=[])
        with self.assertRaises(ValidationFailure):
            create_order(self.db, shop_id=self.shop.id, items=[LineItemInput('SKU001', 0)])
        with self.assertRaises(ValidationFailure):
            create_order(self.db, shop_id=self.shop.id, items=[LineItemInput('SKU999', 1)])
        with self.assertRaises(NotFoundError):
            create_order(self.db, shop_id=self.shop.id + 100, items=[LineItemInput('SKU001', 1)])

    def test_apply_discount_recomputes_final_amount(self) -> None:
        order = create_order(self.db, shop_id=self.shop.id, items=[LineItemInput('SKU003', 3)])
        self.db.commit()
        self.assertEqual(order.final_amount, Decimal('450'))

        updated = apply_discount(self.db, order_id=order.id, discount_code=' FEST ')

        self.assertEqual(updated.discount_code, 'FEST')
        self.assertEqual(updated.discount_amount, Decimal('45'))
        self.assertEqual(updated.final_amount, Decimal('405'))

    def test_apply_discount_errors(self) -> None:
        with self.assertRaises(NotFoundError):
            apply_discount(self.db, order_id=404, discount_code='X')
        order = create_order(self.db, shop_id=self.shop.id, items=[LineItemInput('SKU003', 1)])
        with self.assertRaises(ValidationFailure):
            apply_discount(self.db, order_id=order.id, discount_code='')

    def test_list_orders_filters_by_shop(self) -> None:
        other = add_shop(self.db, name='Other Store')
        create_order(self.db, shop_id=self.shop.id, items=[LineItemInput('SKU001', 1)])
        create_order(self.db, shop_id=other.id, items=[LineItemInput('SKU001', 1)])
        self.db.commit()

        self.assertEqual(len(list_orders(self.db)), 2)
        self.assertEqual([o.shop_id for o in list_orders(self.db, shop_id=other.id)], [other.id])


class ReturnOrderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = seeded_session()
        self.shop = add_shop(self.db)
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_return_order_totals_without_discount(self) -> None:
        order = create_order(self.db, shop_id=self.shop.id, items=[LineItemInput('SKU004', 2)], discount_code='X')
        return_order = create_return_order(
            self.db,
            shop_id=self.shop.id,
            items=[LineItemInput('SKU004', 1)],
            linked_order_id=order.id,
            reason_code='damaged',
            notes='  crushed box  ',
        )

        self.assertEqual(return_order.total_amount, Decimal('450'))
        self.assertEqual(return_order.reason_code, ReturnReason.DAMAGED)
        self.assertEqual(return_order.notes, 'crushed box')

    def test_return_order_requires_existing_linked_order(self) -> None:
        with self.assertRaises(NotFoundError):
            create_return_order(
                self.db,
                shop_id=self.shop.id,
                items=[LineItemInput('SKU001', 1)],
                linked_order_id=999,
            )

    def test_unknown_reason_is_rejected(self) -> None:
        with self.assertRaises(ValidationFailure):
            create_return_order(
                self.db,
                shop_id=self.shop.id,
                items=[LineItemInput('SKU001', 1)],
                reason_code='BORED',
            )


if __name__ == '__main__':
    unittest.main()
