from __future__ import annotations

import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from support import make_session_factory

from snackbasket import db as db_module
from snackbasket.config import settings
from snackbasket.db import get_db
from snackbasket.main import app
from snackbasket.security.csrf import CSRF_COOKIE_NAME
from snackbasket.security.sessions import create_web_session
from snackbasket.services.catalog_service import seed_default_skus
from snackbasket.services.user_service import add_user


class PortalTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        patcher = patch.object(db_module, 'SessionLocal', self.session_factory)
        patcher.start()
        self.addCleanup(patcher.stop)

        def _get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_db
        self.addCleanup(app.dependency_overrides.clear)

        with self.session_factory() as db:
            seed_default_skus(db)
            admin = add_user(db, email='admin@example.com', name='Admin', role='admin', password='adminpass')
            employee = add_user(db, email='field@example.com', name='Field', role='employee', password='fieldpass')
            self.admin_token = create_web_session(db, admin.id, ip=None, user_agent=None)
            self.employee_token = create_web_session(db, employee.id, ip=None, user_agent=None)
            db.commit()

    def client_for(self, token: str | None) -> TestClient:
        cookies = {settings.session_cookie_name: token} if token else None
        return TestClient(app, cookies=cookies, follow_redirects=False)


class ApiTests(PortalTestCase):
    def test_unauthenticated_api_returns_401(self) -> None:
        response = self.client_for(None).get('/api/skus')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'detail': 'Not authenticated'})

    def test_health_and_robots_are_public(self) -> None:
        client = self.client_for(None)

        self.assertEqual(client.get('/healthz').json(), {'status': 'ok'})
        self.assertIn('Disallow: /', client.get('/robots.txt').text)

    def test_catalog_is_camel_case(self) -> None:
        response = self.client_for(self.employee_token).get('/api/skus')

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([sku['id'] for sku in body], ['SKU001', 'SKU002', 'SKU003', 'SKU004'])
        self.assertEqual(body[0]['boxPrice'], 5750.0)
        self.assertEqual(body[0]['costPerUnit'], 200.0)

    def test_order_to_delivered_flow(self) -> None:
        client = self.client_for(self.employee_token)

        shop = client.post(
            '/api/shops',
            json={'name': 'Corner Mart', 'location': 'MG Road', 'phoneNumber': '9876543210', 'category': 'retailer'},
        )
        self.assertEqual(shop.status_code, 201)
        self.assertTrue(shop.json()['isNew'])
        shop_id = shop.json()['id']

        order = client.post(
            '/api/orders',
            json={'shopId': shop_id, 'orderItems': [{'skuId': 'SKU001', 'quantity': 1}], 'discountCode': 'SAVE10'},
        )
        self.assertEqual(order.status_code, 201)
        order_body = order.json()
        self.assertEqual(order_body['totalAmount'], 250.0)
        self.assertEqual(order_body['discountAmount'], 25.0)
        self.assertEqual(order_body['finalAmount'], 225.0)
        self.assertIsNotNone(order_body['deliveryId'])

        delivery = client.get(f"/api/deliveries/by-order/{order_body['id']}").json()
        self.assertEqual(delivery['status'], 'Packaging')
        self.assertEqual(delivery['nextStatus'], 'Transit')
        self.assertRegex(delivery['trackingNumber'], r'^TR-\d{6}$')

        delivered = client.post(f"/api/deliveries/{delivery['id']}/status", json={'status': 'Delivered'})
        self.assertEqual(delivered.status_code, 200)
        self.assertIsNotNone(delivered.json()['actualDeliveryDate'])
        self.assertEqual(len(delivered.json()['statusHistory']), 2)

        backwards = client.post(f"/api/deliveries/{delivery['id']}/status", json={'status': 'Transit'})
        self.assertEqual(backwards.status_code, 400)

        listed = client.get('/api/deliveries', params={'status': 'Delivered'}).json()
        self.assertEqual([row['id'] for row in listed], [delivery['id']])

    def test_order_errors_map_to_http_codes(self) -> None:
        client = self.client_for(self.employee_token)
        shop_id = client.post(
            '/api/shops',
            json={'name': 'Bulk', 'location': 'KR Market', 'phoneNumber': '9123456780', 'category': 'wholesaler'},
        ).json()['id']

        unknown_sku = client.post(
            '/api/orders', json={'shopId': shop_id, 'orderItems': [{'skuId': 'SKU999', 'quantity': 1}]}
        )
        self.assertEqual(unknown_sku.status_code, 400)
        zero_quantity = client.post(
            '/api/orders', json={'shopId': shop_id, 'orderItems': [{'skuId': 'SKU001', 'quantity': 0}]}
        )
        self.assertEqual(zero_quantity.status_code, 422)
        self.assertEqual(client.get('/api/orders/999').status_code, 404)
        self.assertEqual(client.get('/api/deliveries/by-order/999').status_code, 404)

    def test_user_listing_is_admin_only(self) -> None:
        self.assertEqual(self.client_for(self.employee_token).get('/api/users').status_code, 403)

        response = self.client_for(self.admin_token).get('/api/users')
        self.assertEqual(response.status_code, 200)
        self.assertEqual({user['email'] for user in response.json()}, {'admin@example.com', 'field@example.com'})
        me = self.client_for(self.employee_token).get('/api/users/me').json()
        self.assertEqual(me['role'], 'employee')
        self.assertTrue(me['isActive'])

    def test_survey_submission_and_admin_listing(self) -> None:
        payload = {
            'respondentName': 'Priya',
            'productQuality': 5,
            'pricing': 3,
            'deliveryExperience': 4,
            'packaging': 4,
            'overallSatisfaction': 5,
            'concerns': ['Pricing'],
        }
        created = self.client_for(self.employee_token).post('/api/surveys', json=payload)
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()['concerns'], ['Pricing'])

        self.assertEqual(self.client_for(self.employee_token).get('/api/surveys').status_code, 403)
        self.assertEqual(len(self.client_for(self.admin_token).get('/api/surveys').json()), 1)


class WebTests(PortalTestCase):
    def test_pages_redirect_to_login_without_session(self) -> None:
        response = self.client_for(None).get('/home')

        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers['location'], '/login')

    def test_login_form_sets_session_cookie(self) -> None:
        client = self.client_for(None)
        login_page = client.get('/login')
        self.assertEqual(login_page.status_code, 200)
        csrf_token = client.cookies.get(CSRF_COOKIE_NAME)
        self.assertTrue(csrf_token)

        bad = client.post('/login', data={'email': 'admin@example.com', 'password': 'nope', 'csrf_token': csrf_token})
        self.assertEqual(bad.status_code, 401)

        good = client.post(
            '/login', data={'email': 'admin@example.com', 'password': 'adminpass', 'csrf_token': csrf_token}
        )
        self.assertEqual(good.status_code, 303)
        self.assertIn(settings.session_cookie_name, good.cookies)

    def test_post_without_csrf_token_is_rejected(self) -> None:
        response = self.client_for(self.employee_token).post('/shops/new', data={'name': 'X'})

        self.assertEqual(response.status_code, 403)

    def test_dashboard_hides_admin_cards_from_employees(self) -> None:
        employee_home = self.client_for(self.employee_token).get('/home')
        admin_home = self.client_for(self.admin_token).get('/home')

        self.assertEqual(employee_home.status_code, 200)
        self.assertIn('Place Order', employee_home.text)
        self.assertNotIn('Survey Results', employee_home.text)
        self.assertIn('Survey Results', admin_home.text)
        self.assertEqual(employee_home.headers['x-frame-options'], 'DENY')

    def test_order_pages_render(self) -> None:
        client = self.client_for(self.employee_token)
        self.assertEqual(client.get('/orders/new').status_code, 200)
        self.assertEqual(client.get('/deliveries').status_code, 200)
        self.assertEqual(client.get('/shops').status_code, 200)
        self.assertEqual(client.get('/surveys/new').status_code, 200)
        self.assertEqual(client.get('/users').status_code, 403)


if __name__ == '__main__':
    unittest.main()
