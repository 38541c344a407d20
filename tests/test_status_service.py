from __future__ import annotations

import unittest
from datetime import datetime, timezone
from types import SimpleNamespace

from app.auth import PurchaseRole
from app.models import ApprovalStatus
from app.services.errors import InvalidTransition, PermissionDenied
from app.services.status_service import StatusPair, Transition, can_perform, coerce_status, plan_transition

NOW = datetime(2025, 3, 4, 1, 30, tzinfo=timezone.utc)
PENDING = ApprovalStatus.PENDING
APPROVED = ApprovalStatus.APPROVED
REJECTED = ApprovalStatus.REJECTED

MIDDLE = frozenset({PurchaseRole.MIDDLE_MANAGER})
FINAL = frozenset({PurchaseRole.FINAL_APPROVER})
ADMIN = frozenset({PurchaseRole.APP_ADMIN})
CEO = frozenset({PurchaseRole.CEO})


class StatusServiceTests(unittest.TestCase):
    def test_coerce_status_treats_missing_as_pending(self) -> None:
        self.assertEqual(coerce_status(None), PENDING)
        self.assertEqual(coerce_status(''), PENDING)
        self.assertEqual(coerce_status('Approved'), APPROVED)
        self.assertEqual(coerce_status(REJECTED), REJECTED)

    def test_status_pair_reads_line_fields(self) -> None:
        line = SimpleNamespace(middle_manager_status='approved', final_manager_status=None)
        self.assertEqual(StatusPair.of(line), StatusPair(middle=APPROVED, final=PENDING))

    def test_verify_sets_middle_only(self) -> None:
        plan = plan_transition(Transition.VERIFY, StatusPair(), MIDDLE, now=NOW)
        self.assertEqual(plan.after, StatusPair(middle=APPROVED, final=PENDING))
        self.assertEqual(plan.changes, {'middle_manager_status': APPROVED})

    def test_verify_twice_is_a_no_op(self) -> None:
        current = StatusPair(middle=APPROVED, final=PENDING)
        plan = plan_transition(Transition.VERIFY, current, MIDDLE, now=NOW)
        self.assertFalse(plan.changed)
        self.assertEqual(plan.after, current)

    def test_verify_reopens_a_rejected_order(self) -> None:
        plan = plan_transition(Transition.VERIFY, StatusPair(middle=REJECTED, final=REJECTED), MIDDLE, now=NOW)
        self.assertTrue(plan.changed)
        self.assertEqual(plan.after, StatusPair(middle=APPROVED, final=REJECTED))
        self.assertEqual(plan.changes, {'middle_manager_status': APPROVED})

    def test_reject_then_verify_then_approve(self) -> None:
        state = StatusPair()
        state = plan_transition(Transition.REJECT, state, FINAL, now=NOW).after
        self.assertEqual(state, StatusPair(middle=REJECTED, final=REJECTED))
        state = plan_transition(Transition.VERIFY, state, MIDDLE, now=NOW).after
        plan = plan_transition(Transition.APPROVE, state, FINAL, now=NOW)
        self.assertEqual(plan.after, StatusPair(middle=APPROVED, final=APPROVED))
        self.assertEqual(plan.changes['final_manager_approved_at'], NOW)

    def test_approve_requires_prior_verification(self) -> None:
        with self.assertRaises(InvalidTransition):
            plan_transition(Transition.APPROVE, StatusPair(), FINAL, now=NOW)

    def test_approve_stamps_approval_time(self) -> None:
        plan = plan_transition(Transition.APPROVE, StatusPair(middle=APPROVED), FINAL, now=NOW)
        self.assertEqual(plan.after, StatusPair(middle=APPROVED, final=APPROVED))
        self.assertEqual(plan.changes['final_manager_approved_at'], NOW)

    def test_approve_already_approved_is_rejected(self) -> None:
        with self.assertRaises(InvalidTransition):
            plan_transition(Transition.APPROVE, StatusPair(middle=APPROVED, final=APPROVED), FINAL, now=NOW)

    def test_middle_manager_cannot_approve(self) -> None:
        with self.assertRaises(PermissionDenied):
            plan_transition(Transition.APPROVE, StatusPair(middle=APPROVED), MIDDLE, now=NOW)

    def test_reject_always_rejects_both_gates(self) -> None:
        for middle in ApprovalStatus:
            for final in ApprovalStatus:
                plan = plan_transition(Transition.REJECT, StatusPair(middle, final), FINAL, now=NOW)
                self.assertEqual(plan.after, StatusPair(middle=REJECTED, final=REJECTED))

    def test_reset_returns_to_pending_and_clears_timestamps(self) -> None:
        plan = plan_transition(Transition.RESET, StatusPair(middle=APPROVED, final=APPROVED), ADMIN, now=NOW)
        self.assertEqual(plan.after, StatusPair())
        self.assertIsNone(plan.changes['final_manager_approved_at'])
        self.assertIsNone(plan.changes['payment_completed_at'])
        self.assertIsNone(plan.changes['received_at'])
        self.assertFalse(plan.changes['is_payment_completed'])
        self.assertFalse(plan.changes['is_received'])

    def test_reset_is_admin_tier_only(self) -> None:
        for roles in (MIDDLE, FINAL, frozenset({PurchaseRole.LEAD_BUYER}), frozenset()):
            with self.assertRaises(PermissionDenied):
                plan_transition(Transition.RESET, StatusPair(middle=REJECTED, final=REJECTED), roles, now=NOW)
        self.assertTrue(can_perform(CEO, Transition.RESET))

    def test_admin_tier_passes_every_transition(self) -> None:
        for transition in Transition:
            self.assertTrue(can_perform(ADMIN, transition))
            self.assertTrue(can_perform(CEO, transition))

    def test_ordinary_viewer_can_do_nothing(self) -> None:
        for transition in Transition:
            self.assertFalse(can_perform(frozenset(), transition))


if __name__ == '__main__':
    unittest.main()
