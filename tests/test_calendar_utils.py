from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.services.calendar_utils import business_today, default_period, is_today, local_date

SEOUL = ZoneInfo('Asia/Seoul')


class CalendarUtilsTests(unittest.TestCase):
    def test_local_date_converts_aware_datetimes(self) -> None:
        value = datetime(2025, 3, 3, 15, 30, tzinfo=timezone.utc)
        self.assertEqual(local_date(value, zone=SEOUL), date(2025, 3, 4))

    def test_local_date_parses_strings(self) -> None:
        self.assertEqual(local_date('2025-03-04', zone=SEOUL), date(2025, 3, 4))
        self.assertEqual(local_date('2025-03-03T16:00:00Z', zone=SEOUL), date(2025, 3, 4))
        self.assertIsNone(local_date('', zone=SEOUL))
        self.assertIsNone(local_date(None, zone=SEOUL))

    def test_is_today_compares_calendar_days_not_elapsed_time(self) -> None:
        today = date(2025, 3, 4)
        just_after_midnight = datetime(2025, 3, 4, 0, 5, tzinfo=SEOUL)
        just_before_midnight = datetime(2025, 3, 3, 23, 55, tzinfo=SEOUL)
        self.assertTrue(is_today(just_after_midnight, today, zone=SEOUL))
        self.assertFalse(is_today(just_before_midnight, today, zone=SEOUL))
        self.assertFalse(is_today(None, today, zone=SEOUL))

    def test_business_today_uses_zone(self) -> None:
        now = datetime(2025, 12, 31, 16, 0, tzinfo=timezone.utc)
        self.assertEqual(business_today(now=now, zone=SEOUL), date(2026, 1, 1))

    def test_default_period_is_year_to_date(self) -> None:
        self.assertEqual(default_period(date(2025, 3, 4)), (date(2025, 1, 1), date(2025, 3, 4)))


if __name__ == '__main__':
    unittest.main()
