from __future__ import annotations

import re
import unittest
from datetime import timedelta
from unittest.mock import patch

from support import add_shop, seeded_session

from snackbasket.config import settings
from snackbasket.models import DeliveryStatus
from snackbasket.services.delivery_service import (
    DEFAULT_ORIGIN,
    ORDER_RECEIVED_NOTE,
    advance_delivery,
    create_delivery,
    create_delivery_from_order,
    delivery_progress,
    get_next_status,
    list_deliveries,
)
from snackbasket.services.errors import NotFoundError, ValidationFailure
from snackbasket.services.order_service import LineItemInput, create_order


class NextStatusTests(unittest.TestCase):
    def test_walks_phases_in_order(self) -> None:
        self.assertEqual(get_next_status('Packaging'), DeliveryStatus.TRANSIT)
        self.assertEqual(get_next_status(DeliveryStatus.TRANSIT), DeliveryStatus.SHIP_TO_OUTLET)
        self.assertEqual(get_next_status('ShipToOutlet'), DeliveryStatus.OUT_FOR_DELIVERY)
        self.assertEqual(get_next_status('OutForDelivery'), DeliveryStatus.DELIVERED)

    def test_terminal_and_unknown_have_no_next(self) -> None:
        self.assertIsNone(get_next_status('Delivered'))
        self.assertIsNone(get_next_status('Lost'))
        self.assertIsNone(get_next_status(None))


class DeliveryServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = seeded_session()
        self.shop = add_shop(self.db, name='Sai Traders')
        self.order = create_order(self.db, shop_id=self.shop.id, items=[LineItemInput('SKU001', 4)])
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_delivery_from_order_starts_packaging(self) -> None:
        delivery = create_delivery_from_order(self.db, order=self.order, updated_by='field@example.com')
        self.db.commit()

        self.assertEqual(delivery.status, DeliveryStatus.PACKAGING)
        self.assertEqual(delivery.shop_id, self.shop.id)
        self.assertEqual(delivery.current_location, DEFAULT_ORIGIN)
        self.assertRegex(delivery.tracking_number, re.compile(r'^TR-\d{6}$'))
        self.assertEqual(delivery.estimated_delivery_date - delivery.created_at, timedelta(days=3))
        self.assertIsNone(delivery.actual_delivery_date)
        self.assertEqual(len(delivery.status_history), 1)
        self.assertEqual(delivery.status_history[0].notes, ORDER_RECEIVED_NOTE)

    def test_delivery_from_order_is_idempotent(self) -> None:
        first = create_delivery_from_order(self.db, order=self.order)
        self.db.commit()
        second = create_delivery_from_order(self.db, order=self.order)

        self.assertEqual(first.id, second.id)
        self.assertEqual(len(second.status_history), 1)

    def test_advance_appends_history_and_sets_delivery_date(self) -> None:
        delivery = create_delivery_from_order(self.db, order=self.order)
        self.db.commit()

        advance_delivery(self.db, delivery_id=delivery.id, new_status='Transit', location='Hosur hub')
        self.assertEqual(delivery.current_location, 'Hosur hub')
        self.assertIsNone(delivery.actual_delivery_date)

        advance_delivery(self.db, delivery_id=delivery.id, new_status='Delivered', notes='Signed by owner')
        self.db.commit()

        self.assertEqual(delivery.status, DeliveryStatus.DELIVERED)
        self.assertIsNotNone(delivery.actual_delivery_date)
        self.assertEqual(
            [entry.status for entry in delivery.status_history],
            [DeliveryStatus.PACKAGING, DeliveryStatus.TRANSIT, DeliveryStatus.DELIVERED],
        )
        self.assertEqual(delivery.status_history[-1].location, 'Hosur hub')
        self.assertEqual(delivery.status_history[-1].notes, 'Signed by owner')

    def test_forward_only_rejects_backward_and_post_delivery_moves(self) -> None:
        delivery = create_delivery_from_order(self.db, order=self.order)
        advance_delivery(self.db, delivery_id=delivery.id, new_status='OutForDelivery')
        advance_delivery(self.db, delivery_id=delivery.id, new_status='OutForDelivery', notes='Driver delayed')

        with self.assertRaises(ValidationFailure):
            advance_delivery(self.db, delivery_id=delivery.id, new_status='Transit')

        advance_delivery(self.db, delivery_id=delivery.id, new_status='Delivered')
        with self.assertRaises(ValidationFailure):
            advance_delivery(self.db, delivery_id=delivery.id, new_status='Delivered')
        self.assertEqual(len(delivery.status_history), 4)

    def test_backward_moves_allowed_when_not_forward_only(self) -> None:
        delivery = create_delivery_from_order(self.db, order=self.order)
        advance_delivery(self.db, delivery_id=delivery.id, new_status='Delivered')
        self.assertIsNotNone(delivery.actual_delivery_date)

        with patch.object(settings, 'delivery_forward_only', False):
            advance_delivery(self.db, delivery_id=delivery.id, new_status='Transit')

        self.assertEqual(delivery.status, DeliveryStatus.TRANSIT)
        self.assertIsNone(delivery.actual_delivery_date)

    def test_advance_errors(self) -> None:
        with self.assertRaises(NotFoundError):
            advance_delivery(self.db, delivery_id=999, new_status='Transit')
        delivery = create_delivery_from_order(self.db, order=self.order)
        with self.assertRaises(ValidationFailure):
            advance_delivery(self.db, delivery_id=delivery.id, new_status='Lost')

    def test_manual_delivery_keeps_given_fields(self) -> None:
        delivery = create_delivery(
            self.db,
            order_id=self.order.id,
            status='ShipToOutlet',
            current_location=' Outlet 4 ',
            tracking_number='TR-123456',
            delivery_notes='Fragile',
            updated_by='admin@example.com',
        )

        self.assertEqual(delivery.status, DeliveryStatus.SHIP_TO_OUTLET)
        self.assertEqual(delivery.current_location, 'Outlet 4')
        self.assertEqual(delivery.tracking_number, 'TR-123456')
        self.assertEqual(delivery.status_history[0].updated_by, 'admin@example.com')

        with self.assertRaises(ValidationFailure):
            create_delivery(self.db, order_id=self.order.id)
        with self.assertRaises(NotFoundError):
            create_delivery(self.db, order_id=999)

    def test_list_filters_by_status_and_search(self) -> None:
        other_shop = add_shop(self.db, name='Lakshmi Stores')
        other_order = create_order(self.db, shop_id=other_shop.id, items=[LineItemInput('SKU003', 2)])
        first = create_delivery_from_order(self.db, order=self.order)
        second = create_delivery_from_order(self.db, order=other_order)
        advance_delivery(self.db, delivery_id=second.id, new_status='Transit')
        self.db.commit()

        self.assertEqual([d.id for d in list_deliveries(self.db, status='Transit')], [second.id])
        self.assertEqual(len(list_deliveries(self.db, status='all')), 2)
        self.assertEqual([d.id for d in list_deliveries(self.db, search='lakshmi')], [second.id])
        self.assertEqual([d.id for d in list_deliveries(self.db, search=first.tracking_number)], [first.id])
        with self.assertRaises(ValidationFailure):
            list_deliveries(self.db, status='Lost')

    def test_progress_marks_completed_and_current(self) -> None:
        delivery = create_delivery_from_order(self.db, order=self.order)
        advance_delivery(self.db, delivery_id=delivery.id, new_status='ShipToOutlet')

        progress = delivery_progress(delivery)

        self.assertEqual([step['completed'] for step in progress], [True, True, False, False, False])
        self.assertEqual([step['current'] for step in progress], [False, False, True, False, False])


if __name__ == '__main__':
    unittest.main()
