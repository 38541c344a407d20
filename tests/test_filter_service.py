from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from app.auth import PurchaseRole
from app.models import ApprovalStatus, PaymentCategory, ProgressType, RequestType
from app.services.filter_service import (
    ALL_EMPLOYEES,
    FilterCriteria,
    QueueView,
    approval_queue,
    approval_queue_counts,
    approval_queue_types,
    default_employee_filter,
    display_rows,
    filter_lines,
    format_grouped_number,
    format_plain_number,
    matches_search,
    tab_counts,
)
from app.services.tab_service import Tab
from tests.factories import make_line

TODAY = date(2025, 3, 4)


class NumberFormattingTests(unittest.TestCase):
    def test_integral_values_drop_decimals(self) -> None:
        self.assertEqual(format_plain_number(Decimal('1500.00')), '1500')
        self.assertEqual(format_grouped_number(Decimal('1500.00')), '1,500')
        self.assertEqual(format_grouped_number(Decimal('1234567')), '1,234,567')

    def test_fractional_values_keep_significant_digits(self) -> None:
        self.assertEqual(format_plain_number(Decimal('12.50')), '12.5')
        self.assertEqual(format_grouped_number(Decimal('1234.5')), '1,234.5')

    def test_empty_and_zero(self) -> None:
        self.assertEqual(format_plain_number(None), '')
        self.assertEqual(format_grouped_number(0), '')


class SearchTests(unittest.TestCase):
    def test_grouped_and_raw_price_both_match(self) -> None:
        line = make_line(unit_price=Decimal('1500'), amount=Decimal('3000'), quantity=2)
        self.assertTrue(matches_search(line, '1,500'))
        self.assertTrue(matches_search(line, '1500'))
        self.assertTrue(matches_search(line, '3,000'))
        self.assertFalse(matches_search(line, '2,500'))

    def test_search_is_case_insensitive_over_text_fields(self) -> None:
        line = make_line(item_name='Hex Bolt M8', vendor_name='Acme Steel', remark='urgent')
        self.assertTrue(matches_search(line, 'hex bolt'))
        self.assertTrue(matches_search(line, 'ACME'))
        self.assertTrue(matches_search(line, 'Urgent'))
        self.assertTrue(matches_search(line, '   '))
        self.assertFalse(matches_search(line, 'washer'))


class FilterPipelineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.lines = [
            make_line('PO-1', 1, requester_name='Kim', item_name='Bolt'),
            make_line('PO-1', 2, requester_name='Kim', item_name='Nut'),
            make_line('PO-2', 1, requester_name='Lee', item_name='Washer'),
            make_line('PO-3', 1, requester_name='Kim', request_date=date(2024, 12, 31)),
            make_line(
                'PO-4',
                1,
                requester_name='Lee',
                payment_category=PaymentCategory.PURCHASE_REQUEST,
                progress_type=ProgressType.ADVANCE,
            ),
        ]

    def test_employee_filter(self) -> None:
        selected = filter_lines(self.lines, FilterCriteria(tab=Tab.DONE, employee='Kim'), today=TODAY)
        self.assertEqual({line.order_number for line in selected}, {'PO-1'})

    def test_period_defaults_to_year_to_date(self) -> None:
        selected = filter_lines(self.lines, FilterCriteria(tab=Tab.DONE), today=TODAY)
        self.assertNotIn('PO-3', {line.order_number for line in selected})

    def test_explicit_period_is_inclusive(self) -> None:
        criteria = FilterCriteria(tab=Tab.DONE, period_start=date(2024, 12, 31), period_end=date(2024, 12, 31))
        selected = filter_lines(self.lines, criteria, today=TODAY)
        self.assertEqual([line.order_number for line in selected], ['PO-3'])

    def test_search_match_on_a_sub_line_keeps_the_whole_order(self) -> None:
        rows = display_rows(self.lines, FilterCriteria(tab=Tab.DONE, search='nut'), today=TODAY)
        self.assertEqual([(row.line.line_number, row.group_size) for row in rows if row.is_group_header], [(1, 2)])
        self.assertEqual([row.line.item_name for row in rows], ['Bolt', 'Nut'])
        self.assertTrue(rows[1].is_last_sub_item)

    def test_search_covers_item_links(self) -> None:
        lines = [
            make_line('PO-7', 1, item_name='Bolt'),
            make_line('PO-7', 2, item_name='Gasket', link='https://shop.example.com/gasket-42'),
        ]
        selected = filter_lines(lines, FilterCriteria(tab=Tab.DONE, search='gasket-42'), today=TODAY)
        self.assertEqual([line.line_number for line in selected], [1, 2])

    def test_tab_filter(self) -> None:
        selected = filter_lines(self.lines, FilterCriteria(tab=Tab.PURCHASE), today=TODAY)
        self.assertEqual([line.order_number for line in selected], ['PO-4'])

    def test_consumable_manager_only_sees_purchase_requests_in_pending(self) -> None:
        roles = frozenset({PurchaseRole.CONSUMABLE_MANAGER})
        selected = filter_lines(self.lines, FilterCriteria(tab=Tab.PENDING), today=TODAY, viewer_roles=roles)
        self.assertEqual({line.order_number for line in selected}, {'PO-4'})

        mixed = roles | {PurchaseRole.RAW_MATERIAL_MANAGER}
        selected = filter_lines(self.lines, FilterCriteria(tab=Tab.PENDING), today=TODAY, viewer_roles=mixed)
        self.assertEqual({line.order_number for line in selected}, {'PO-1', 'PO-2', 'PO-4'})

    def test_tab_counts_count_orders_not_lines(self) -> None:
        counts = tab_counts(self.lines, employee=ALL_EMPLOYEES, today=TODAY)
        self.assertEqual(counts, {'pending': 3, 'purchase': 1, 'receipt': 1, 'done': 3})


class DefaultEmployeeFilterTests(unittest.TestCase):
    def test_ordinary_viewer_sees_self_except_done(self) -> None:
        roles = frozenset()
        self.assertEqual(default_employee_filter(roles, Tab.PENDING, 'Kim'), 'Kim')
        self.assertEqual(default_employee_filter(roles, Tab.PURCHASE, 'Kim'), 'Kim')
        self.assertEqual(default_employee_filter(roles, Tab.RECEIPT, 'Kim'), 'Kim')
        self.assertEqual(default_employee_filter(roles, Tab.DONE, 'Kim'), ALL_EMPLOYEES)

    def test_purchase_manager_sees_all_in_purchasing_views(self) -> None:
        roles = frozenset({PurchaseRole.PURCHASE_MANAGER})
        self.assertEqual(default_employee_filter(roles, Tab.PURCHASE, 'Park'), ALL_EMPLOYEES)
        self.assertEqual(default_employee_filter(roles, Tab.DONE, 'Park'), ALL_EMPLOYEES)
        self.assertEqual(default_employee_filter(roles, Tab.PENDING, 'Park'), 'Park')
        self.assertEqual(default_employee_filter(roles, Tab.RECEIPT, 'Park'), 'Park')

    def test_admin_tier_sees_all_everywhere(self) -> None:
        for role in (PurchaseRole.APP_ADMIN, PurchaseRole.CEO):
            for tab in Tab:
                self.assertEqual(default_employee_filter(frozenset({role}), tab, 'Choi'), ALL_EMPLOYEES)


class ApprovalQueueTests(unittest.TestCase):
    def setUp(self) -> None:
        self.lines = [
            make_line('RAW-1', request_type=RequestType.RAW_MATERIAL),
            make_line('CON-1', request_type=RequestType.CONSUMABLE),
            make_line(
                'CON-2',
                request_type=RequestType.CONSUMABLE,
                middle_manager_status=ApprovalStatus.APPROVED,
                final_manager_status=ApprovalStatus.APPROVED,
            ),
        ]

    def test_request_type_scope_by_role(self) -> None:
        self.assertIsNone(approval_queue_types(frozenset({PurchaseRole.MIDDLE_MANAGER})))
        self.assertEqual(
            approval_queue_types(frozenset({PurchaseRole.RAW_MATERIAL_MANAGER})),
            frozenset({RequestType.RAW_MATERIAL}),
        )
        both = frozenset({PurchaseRole.RAW_MATERIAL_MANAGER, PurchaseRole.CONSUMABLE_MANAGER})
        self.assertEqual(approval_queue_types(both), frozenset(RequestType))

    def test_consumable_manager_queue(self) -> None:
        roles = frozenset({PurchaseRole.CONSUMABLE_MANAGER})
        pending = approval_queue(self.lines, roles=roles)
        self.assertEqual([line.order_number for line in pending], ['CON-1'])
        everything = approval_queue(self.lines, roles=roles, view=QueueView.ALL)
        self.assertEqual([line.order_number for line in everything], ['CON-1', 'CON-2'])
        self.assertEqual(approval_queue_counts(self.lines, roles=roles), {'pending': 1, 'approved': 1, 'all': 2})


if __name__ == '__main__':
    unittest.main()
