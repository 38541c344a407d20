from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal
from io import BytesIO

from openpyxl import load_workbook

from app.services.spreadsheet_service import (
    FIRST_ITEM_ROW,
    ITEM_HEADER_ROW,
    WorkbookHeader,
    build_purchase_order_workbook,
    format_money,
)
from tests.factories import make_line


class SpreadsheetServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.header = WorkbookHeader(
            order_number='F20250304_001',
            requester_name='Kim',
            request_date=date(2025, 3, 4),
            delivery_request_date=date(2025, 3, 11),
            vendor_name='Acme Steel',
            contact_name='Lee',
            vendor_phone='02-123-4567',
            project_vendor='Hanil',
            sales_order_number='SO-9',
            project_item='Frame',
        )
        self.lines = [
            make_line('F20250304_001', 1, item_name='Bolt', quantity=10, unit_price=Decimal('150'), amount=Decimal('1500')),
            make_line('F20250304_001', 2, item_name='Nut', quantity=4, unit_price=Decimal('25.5'), amount=Decimal('102')),
        ]

    def _sheet(self):
        content = build_purchase_order_workbook(self.header, self.lines)
        return load_workbook(BytesIO(content)).active

    def test_header_block(self) -> None:
        sheet = self._sheet()
        self.assertEqual(sheet['A1'].value, '발 주 서')
        self.assertEqual(sheet['C2'].value, 'Acme Steel')
        self.assertEqual(sheet['C3'].value, 'Lee')
        self.assertEqual(sheet['C4'].value, '2025-03-04')
        self.assertEqual(sheet['C7'].value, '2025-03-11')
        self.assertEqual(sheet['F2'].value, 'Kim')
        self.assertEqual(sheet['F4'].value, 'F20250304_001')

    def test_cells_are_vertically_centered(self) -> None:
        sheet = self._sheet()
        self.assertEqual(sheet['A1'].alignment.vertical, 'center')
        self.assertEqual(sheet.cell(row=FIRST_ITEM_ROW, column=5).alignment.horizontal, 'right')
        self.assertEqual(sheet.cell(row=FIRST_ITEM_ROW, column=5).alignment.vertical, 'center')

    def test_item_table_total_and_project_block(self) -> None:
        sheet = self._sheet()
        self.assertEqual(sheet.cell(row=ITEM_HEADER_ROW, column=1).value, 'No')
        self.assertEqual(sheet.cell(row=FIRST_ITEM_ROW, column=2).value, 'Bolt')
        self.assertEqual(sheet.cell(row=FIRST_ITEM_ROW, column=5).value, '150 ₩')
        self.assertEqual(sheet.cell(row=FIRST_ITEM_ROW + 1, column=5).value, '25.50 ₩')

        sum_row = FIRST_ITEM_ROW + len(self.lines)
        self.assertEqual(sheet.cell(row=sum_row, column=1).value, '합계')
        self.assertEqual(sheet.cell(row=sum_row, column=6).value, '1,602 ₩')
        self.assertEqual(sheet.cell(row=sum_row + 1, column=7).value, 'Hanil')
        self.assertEqual(sheet.cell(row=sum_row + 2, column=7).value, 'SO-9')
        self.assertEqual(sheet.cell(row=sum_row + 3, column=7).value, 'Frame')
        self.assertEqual(sheet.column_dimensions['G'].width, 38.17)

    def test_format_money(self) -> None:
        self.assertEqual(format_money(Decimal('1234567'), 'KRW'), '1,234,567 ₩')
        self.assertEqual(format_money(Decimal('12.5'), 'USD'), '12.50 $')
        self.assertEqual(format_money(Decimal('3'), 'GBP'), '3 GBP')
        self.assertEqual(format_money(None, 'KRW'), '')


if __name__ == '__main__':
    unittest.main()
