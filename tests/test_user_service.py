from __future__ import annotations

import unittest
from unittest.mock import patch

from support import make_session_factory

from snackbasket.models import UserRole
from snackbasket.security.passwords import check_password
from snackbasket.services.errors import NotFoundError, ValidationFailure
from snackbasket.services.user_service import (
    add_user,
    authenticate,
    delete_user,
    get_user,
    set_user_password,
    sync_user_from_identity,
    update_user,
)


class UserServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.admin = add_user(
            self.db,
            email='Admin@Example.com',
            name='Admin',
            role='admin',
            password='adminpass',
        )
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_email_is_normalised_and_unique(self) -> None:
        self.assertEqual(self.admin.email, 'admin@example.com')
        with self.assertRaises(ValidationFailure):
            add_user(self.db, email=' ADMIN@example.com ', name='Dup')
        with self.assertRaises(ValidationFailure):
            add_user(self.db, email='not-an-email', name='Bad')
        with self.assertRaises(ValidationFailure):
            add_user(self.db, email='short@example.com', name='Short', password='abc')

    def test_authenticate_reports_failure_reasons(self) -> None:
        user, reason = authenticate(self.db, email='admin@example.com', password='adminpass')
        self.assertEqual(user.id, self.admin.id)
        self.assertIsNone(reason)

        self.assertEqual(authenticate(self.db, email='nobody@example.com', password='x')[1], 'UNKNOWN_EMAIL')
        self.assertEqual(authenticate(self.db, email='admin@example.com', password='wrong')[1], 'BAD_PASSWORD')

        sso_only = add_user(self.db, email='sso@example.com', name='SSO')
        self.assertIsNone(sso_only.password_hash)
        self.assertEqual(authenticate(self.db, email='sso@example.com', password='')[1], 'BAD_PASSWORD')

        update_user(self.db, user_id=sso_only.id, is_active=False, actor_user_id=self.admin.id)
        self.assertEqual(authenticate(self.db, email='sso@example.com', password='')[1], 'INACTIVE_USER')

    def test_identity_sync_creates_employee_once(self) -> None:
        first = sync_user_from_identity(self.db, email='Ravi@Example.com', name='')
        second = sync_user_from_identity(self.db, email='ravi@example.com', name='Ravi K')

        self.assertEqual(first.id, second.id)
        self.assertEqual(first.role, UserRole.EMPLOYEE)
        self.assertEqual(first.name, 'ravi')
        self.assertTrue(first.is_active)

    def test_admin_cannot_lock_themselves_out(self) -> None:
        with self.assertRaises(ValidationFailure):
            update_user(self.db, user_id=self.admin.id, role='employee', actor_user_id=self.admin.id)
        with self.assertRaises(ValidationFailure):
            update_user(self.db, user_id=self.admin.id, is_active=False, actor_user_id=self.admin.id)
        with self.assertRaises(ValidationFailure):
            delete_user(self.db, user_id=self.admin.id, actor_user_id=self.admin.id)

    def test_password_reset_and_delete(self) -> None:
        employee = add_user(self.db, email='emp@example.com', name='Emp')
        set_user_password(self.db, user_id=employee.id, new_password='newsecret')
        self.assertIsNone(authenticate(self.db, email='emp@example.com', password='newsecret')[1])

        delete_user(self.db, user_id=employee.id, actor_user_id=self.admin.id)
        with self.assertRaises(NotFoundError):
            get_user(self.db, employee.id)

    def test_outdated_hash_is_replaced_on_login(self) -> None:
        with patch('snackbasket.security.passwords.password_hasher.verify_and_update') as verify_mock:
            verify_mock.return_value = (True, 'upgraded-hash')
            user, reason = authenticate(self.db, email='admin@example.com', password='adminpass')

        self.assertIsNone(reason)
        self.assertEqual(user.password_hash, 'upgraded-hash')

    def test_missing_hash_never_matches(self) -> None:
        self.assertEqual(check_password('anything', None), (False, None))
        self.assertEqual(check_password('anything', ''), (False, None))


if __name__ == '__main__':
    unittest.main()
