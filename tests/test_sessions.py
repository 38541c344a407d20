from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

from app.auth import PurchaseRole
from app.security.sessions import load_principal_from_token, principal_from_employee


def employee(**overrides) -> SimpleNamespace:
    fields = {
        'id': 4,
        'name': 'Park',
        'email': 'park@example.com',
        'purchase_roles': ['lead_buyer', 'purchase_manager', 'retired_role'],
        'active': True,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def web_session(**overrides) -> SimpleNamespace:
    fields = {
        'revoked_at': None,
        'expires_at': datetime.now(tz=timezone.utc) + timedelta(hours=1),
        'last_seen_at': None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def db_with(row) -> MagicMock:
    db = MagicMock()
    db.execute.return_value.one_or_none.return_value = row
    return db


class PrincipalFromEmployeeTests(unittest.TestCase):
    def test_roles_are_parsed_and_unknown_tokens_dropped(self) -> None:
        principal = principal_from_employee(employee())
        self.assertEqual(principal.roles, frozenset({PurchaseRole.LEAD_BUYER, PurchaseRole.PURCHASE_MANAGER}))
        self.assertEqual(principal.name, 'Park')

    def test_name_falls_back_to_email_local_part(self) -> None:
        principal = principal_from_employee(employee(name='', purchase_roles=None))
        self.assertEqual(principal.name, 'park')
        self.assertEqual(principal.roles, frozenset())


class LoadPrincipalTests(unittest.TestCase):
    def test_missing_token_skips_the_query(self) -> None:
        db = MagicMock()
        self.assertIsNone(load_principal_from_token(db, None))
        db.execute.assert_not_called()

    def test_live_session_is_extended(self) -> None:
        session = web_session()
        previous_expiry = session.expires_at
        principal = load_principal_from_token(db_with((session, employee())), 'token')
        self.assertEqual(principal.id, 4)
        self.assertIsNotNone(session.last_seen_at)
        self.assertGreater(session.expires_at, previous_expiry - timedelta(minutes=1))

    def test_expired_or_revoked_sessions_are_ignored(self) -> None:
        expired = web_session(expires_at=datetime.now(tz=timezone.utc) - timedelta(minutes=1))
        revoked = web_session(revoked_at=datetime.now(tz=timezone.utc))
        self.assertIsNone(load_principal_from_token(db_with((expired, employee())), 'token'))
        self.assertIsNone(load_principal_from_token(db_with((revoked, employee())), 'token'))

    def test_deactivated_employee_loses_the_session(self) -> None:
        session = web_session()
        self.assertIsNone(load_principal_from_token(db_with((session, employee(active=False))), 'token'))
        self.assertIsNotNone(session.revoked_at)


if __name__ == '__main__':
    unittest.main()
