"""Purchase-order workbook rendering with openpyxl.

The sheet mirrors the paper form buyers send to vendors: a title row, a
two-column label block (vendor on the left, our side on the right), the item
table starting at row 9, a total row and a project info block under it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, Side

XLSX_MEDIA_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

TITLE = '발 주 서'
ITEM_HEADERS = ['No', '품명', '규격', '수량', '단가', '금액', '비고']
ITEM_HEADER_ROW = 8
FIRST_ITEM_ROW = 9
LAST_COLUMN = 7

COLUMN_WIDTHS = {'A': 5.5, 'B': 11.83, 'C': 30.83, 'D': 11.83, 'E': 14.83, 'F': 16.83, 'G': 38.17}

CURRENCY_SYMBOLS = {
    'KRW': '₩',
    'USD': '$',
    'EUR': '€',
    'JPY': '¥',
    'CNY': '¥',
}

CENTER = Alignment(horizontal='center', vertical='center')
RIGHT = Alignment(horizontal='right', vertical='center')
THIN = Side(style='thin')
MEDIUM = Side(style='medium')


@dataclass(frozen=True)
class WorkbookHeader:
    order_number: str
    requester_name: str
    request_date: date | None
    delivery_request_date: date | None = None
    vendor_name: str = ''
    contact_name: str = ''
    vendor_phone: str = ''
    vendor_fax: str = ''
    company_address: str = ''
    project_vendor: str = ''
    sales_order_number: str = ''
    project_item: str = ''


def currency_symbol(currency: str | None) -> str:
    code = (currency or '').strip().upper()
    return CURRENCY_SYMBOLS.get(code, code)


def format_money(value, currency: str | None) -> str:
    if value is None:
        return ''
    number = Decimal(str(value))
    text = f'{number:,.0f}' if number == number.to_integral_value() else f'{number:,.2f}'
    return f'{text} {currency_symbol(currency)}'.strip()


def _format_date(value) -> str:
    if value is None:
        return ''
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat() if isinstance(value, date) else str(value)


def _label_block(sheet, header: WorkbookHeader) -> None:
    for row in range(2, 8):
        sheet.merge_cells(f'A{row}:B{row}')
        sheet.merge_cells(f'C{row}:D{row}')
        if row < 7:
            sheet.merge_cells(f'F{row}:G{row}')
    sheet.merge_cells('E7:F7')

    left = [
        ('업   체   명', header.vendor_name),
        ('담   당   자', header.contact_name),
        ('청   구   일', _format_date(header.request_date)),
        ('TEL.', header.vendor_phone),
        ('FAX.', header.vendor_fax),
        ('입 고 요 청 일', _format_date(header.delivery_request_date)),
    ]
    for offset, (label, value) in enumerate(left):
        sheet.cell(row=2 + offset, column=1, value=label)
        sheet.cell(row=2 + offset, column=3, value=value or '')

    right = [
        ('구매요청자', header.requester_name),
        ('주         소', header.company_address),
        ('발 주 번 호', header.order_number),
        ('TEL.', header.vendor_phone),
        ('FAX.', header.vendor_fax),
    ]
    for offset, (label, value) in enumerate(right):
        sheet.cell(row=2 + offset, column=5, value=label)
        sheet.cell(row=2 + offset, column=6, value=value or '')


def _apply_borders(sheet, last_row: int) -> None:
    for row in range(1, last_row + 1):
        for column in range(1, LAST_COLUMN + 1):
            cell = sheet.cell(row=row, column=column)
            if cell.alignment.horizontal is None:
                cell.alignment = CENTER
            cell.border = Border(
                top=MEDIUM if row in (1, 2, ITEM_HEADER_ROW) else THIN,
                bottom=MEDIUM if row in (ITEM_HEADER_ROW, last_row) else THIN,
                left=MEDIUM if column == 1 else THIN,
                right=MEDIUM if column == LAST_COLUMN else THIN,
            )


def build_purchase_order_workbook(header: WorkbookHeader, lines) -> bytes:
    """Render one order as xlsx bytes; ``lines`` must already be in line-number order."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = '발주서'
    sheet.page_setup.paperSize = sheet.PAPERSIZE_A4
    sheet.page_setup.orientation = sheet.ORIENTATION_PORTRAIT
    sheet.page_setup.fitToWidth = 1
    sheet.page_setup.fitToHeight = 1
    sheet.sheet_properties.pageSetUpPr.fitToPage = True
    sheet.print_options.horizontalCentered = True

    sheet.merge_cells('A1:G1')
    sheet.row_dimensions[1].height = 29.8
    title = sheet.cell(row=1, column=1, value=TITLE)
    title.font = Font(bold=True, size=20)
    title.alignment = CENTER

    _label_block(sheet, header)

    for column, label in enumerate(ITEM_HEADERS, start=1):
        sheet.cell(row=ITEM_HEADER_ROW, column=column, value=label).font = Font(bold=True)

    currency = lines[0].currency if lines else 'KRW'
    total = Decimal('0')
    row = FIRST_ITEM_ROW
    for line in lines:
        sheet.cell(row=row, column=1, value=line.line_number)
        sheet.cell(row=row, column=2, value=line.item_name)
        sheet.cell(row=row, column=3, value=line.specification or '')
        sheet.cell(row=row, column=4, value=line.quantity)
        sheet.cell(row=row, column=5, value=format_money(line.unit_price, line.currency)).alignment = RIGHT
        sheet.cell(row=row, column=6, value=format_money(line.amount, line.currency)).alignment = RIGHT
        sheet.cell(row=row, column=7, value=line.remark or '')
        total += Decimal(str(line.amount or 0))
        row += 1

    sum_row = row
    sheet.cell(row=sum_row, column=1, value='합계').font = Font(bold=True)
    sheet.cell(row=sum_row, column=6, value=format_money(total, currency)).alignment = RIGHT

    project_info = [
        ('PJ업체', header.project_vendor),
        ('수주번호', header.sales_order_number),
        ('item', header.project_item),
    ]
    for offset, (label, value) in enumerate(project_info, start=1):
        sheet.cell(row=sum_row + offset, column=6, value=label)
        sheet.cell(row=sum_row + offset, column=7, value=value or '')

    for letter, width in COLUMN_WIDTHS.items():
        sheet.column_dimensions[letter].width = width

    _apply_borders(sheet, sum_row + len(project_info))

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def workbook_filename(order_number: str) -> str:
    return f'{order_number}.xlsx'
