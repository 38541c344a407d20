"""Collapse flat purchase-order lines into per-order display groups.

Groups are never stored: they are rebuilt from the flat line collection on
every read. Partitions keep the relative order in which each order number is
first seen; members within a partition are ordered by line number.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class DisplayRow:
    line: object
    is_group_header: bool = False
    group_size: int = 1
    is_sub_item: bool = False
    is_last_sub_item: bool = False

    @property
    def order_number(self) -> str:
        return self.line.order_number


@dataclass(frozen=True)
class OrderGroup:
    order_number: str
    lines: tuple

    @property
    def total_amount(self) -> Decimal:
        return sum((Decimal(line.amount or 0) for line in self.lines), Decimal('0'))


@dataclass(frozen=True)
class GroupedLines:
    """Lines laid out contiguously per order, with an index of (start, stop) ranges."""

    lines: tuple
    ranges: dict

    def order_numbers(self) -> list[str]:
        return list(self.ranges)

    def group(self, order_number: str) -> OrderGroup:
        start, stop = self.ranges[order_number]
        return OrderGroup(order_number=order_number, lines=self.lines[start:stop])

    def groups(self) -> list[OrderGroup]:
        return [self.group(order_number) for order_number in self.ranges]


def _order_key(line) -> str:
    return line.order_number or ''


def partition_lines(lines) -> GroupedLines:
    buckets: dict[str, list] = {}
    for line in lines:
        buckets.setdefault(_order_key(line), []).append(line)

    ordered: list = []
    ranges: dict[str, tuple[int, int]] = {}
    for order_number, members in buckets.items():
        start = len(ordered)
        # sorted() is stable, so duplicate line numbers keep input order.
        ordered.extend(sorted(members, key=lambda member: member.line_number))
        ranges[order_number] = (start, len(ordered))
    return GroupedLines(lines=tuple(ordered), ranges=ranges)


def build_display_rows(lines) -> list[DisplayRow]:
    grouped = partition_lines(lines)
    rows: list[DisplayRow] = []
    for order_number, (start, stop) in grouped.ranges.items():
        size = stop - start
        rows.append(DisplayRow(line=grouped.lines[start], is_group_header=True, group_size=size))
        for index in range(start + 1, stop):
            rows.append(
                DisplayRow(
                    line=grouped.lines[index],
                    is_sub_item=True,
                    is_last_sub_item=index == stop - 1,
                )
            )
    return rows


def group_totals(lines) -> dict[str, Decimal]:
    return {group.order_number: group.total_amount for group in partition_lines(lines).groups()}


def display_row_to_dict(row: DisplayRow, *, line_serializer) -> dict:
    payload = line_serializer(row.line)
    payload.update(
        {
            'is_group_header': row.is_group_header,
            'group_size': row.group_size,
            'is_sub_item': row.is_sub_item,
            'is_last_sub_item': row.is_last_sub_item,
        }
    )
    return payload
