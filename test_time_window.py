# test_time_window.py
import unittest
from datetime import datetime, time, timedelta

from errors import InvalidDateRangeError
from time_window import TimeWindow, build_window, describe_period, parse_bound

NOW = datetime(2024, 3, 10, 15, 30).astimezone()


class TestParseBound(unittest.TestCase):

    def test_date_only_bounds_are_whole_days(self):
        since = parse_bound("2024-03-01", is_end=False, now=NOW)
        until = parse_bound("2024-03-01", is_end=True, now=NOW)
        self.assertEqual(since.time(), time(0, 0))
        self.assertEqual(until.time(), time(23, 59, 59, 999999))
        self.assertEqual(since.date(), until.date())
        self.assertIsNotNone(since.tzinfo)

    def test_keywords(self):
        self.assertEqual(parse_bound("now", is_end=True, now=NOW), NOW)
        today = parse_bound("today", is_end=False, now=NOW)
        self.assertEqual(today.date(), NOW.date())
        self.assertEqual(today.time(), time(0, 0))
        yesterday = parse_bound("yesterday", is_end=True, now=NOW)
        self.assertEqual(yesterday.date(), NOW.date() - timedelta(days=1))
        self.assertEqual(yesterday.time(), time(23, 59, 59, 999999))

    def test_relative(self):
        self.assertEqual(parse_bound("7d", is_end=False, now=NOW), NOW - timedelta(days=7))
        self.assertEqual(parse_bound("2w", is_end=False, now=NOW), NOW - timedelta(days=14))
        self.assertEqual(parse_bound("1m", is_end=False, now=NOW), NOW - timedelta(days=30))
        self.assertEqual(parse_bound("1y", is_end=False, now=NOW), NOW - timedelta(days=365))

    def test_iso_timestamp(self):
        value = parse_bound("2024-03-05T08:15:00+00:00", is_end=False, now=NOW)
        self.assertEqual(value.utcoffset(), timedelta(0))
        self.assertEqual(value.hour, 8)

    def test_invalid_values(self):
        for value in ("", "next tuesday", "2024-13-01", "7x"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidDateRangeError):
                    parse_bound(value, is_end=False, now=NOW)


class TestBuildWindow(unittest.TestCase):

    def test_since_after_until_is_rejected(self):
        with self.assertRaises(InvalidDateRangeError):
            build_window("2024-03-05", "2024-03-01", now=NOW)

    def test_same_day_window(self):
        window = build_window("2024-03-05", "2024-03-05", now=NOW)
        self.assertTrue(window.contains(datetime(2024, 3, 5, 0, 0).astimezone()))
        self.assertTrue(window.contains(datetime(2024, 3, 5, 23, 59, 59, 999999).astimezone()))
        self.assertFalse(window.contains(datetime(2024, 3, 6, 0, 0).astimezone()))

    def test_open_window(self):
        window = build_window(None, None, now=NOW)
        self.assertIsNone(window.since)
        self.assertEqual(window.until, NOW)
        self.assertIsNone(window.previous())
        self.assertIsNone(window.length)
        self.assertTrue(window.contains(datetime(1999, 1, 1).astimezone()))

    def test_label(self):
        self.assertEqual(build_window("7d", None, now=NOW).label, "Last 7 days")


class TestTimeWindow(unittest.TestCase):

    def test_bounds_are_inclusive(self):
        since = datetime(2024, 3, 1).astimezone()
        until = datetime(2024, 3, 8).astimezone()
        window = TimeWindow(since=since, until=until)
        self.assertTrue(window.contains(since))
        self.assertTrue(window.contains(until))
        self.assertFalse(window.contains(since - timedelta(microseconds=1)))
        self.assertFalse(window.contains(until + timedelta(microseconds=1)))

    def test_previous_window(self):
        window = build_window("2024-02-05", "2024-02-11", now=NOW)
        prior = window.previous()
        self.assertEqual(prior.length, window.length)
        self.assertEqual(prior.until, window.since - timedelta(microseconds=1))
        self.assertFalse(prior.contains(window.since))
        self.assertEqual(prior.since.date(), datetime(2024, 1, 29).date())


class TestDescribePeriod(unittest.TestCase):

    def test_descriptions(self):
        self.assertEqual(describe_period(None, None), "All commits")
        self.assertEqual(describe_period("2w", None), "Last 2 weeks")
        self.assertEqual(describe_period("today", None), "Today")
        self.assertEqual(describe_period("2024-03-01", None), "2024-03-01 to present")
        self.assertEqual(describe_period("2024-03-01", "2024-03-05"), "2024-03-01 to 2024-03-05")


if __name__ == "__main__":
    unittest.main()
