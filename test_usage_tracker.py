"""
Usage tracker tests.

The in-memory tracker is exercised directly; the Redis tracker runs
against a mocked client so no server is needed.

Run: python -m pytest test_usage_tracker.py
"""

import os
import sys
import threading
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from trends.errors import UsageTrackerError
from trends.usage import USED_KEY, MemoryUsageTracker, RedisUsageTracker

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
WINDOW = timedelta(days=1)


class TestMemoryUsageTracker(unittest.TestCase):

    def setUp(self):
        self.tracker = MemoryUsageTracker(WINDOW)

    def test_window_bounds(self):
        self.tracker.record(1, T0)
        self.tracker.record(2, T0 - timedelta(hours=23))
        self.tracker.record(3, T0 - WINDOW)              # exactly at the cutoff
        self.tracker.record(4, T0 + timedelta(hours=1))  # after the read point

        self.assertEqual(self.tracker.recently_used(T0), {1, 2})

    def test_empty_tracker(self):
        self.assertEqual(self.tracker.recently_used(T0), set())
        self.assertEqual(self.tracker.trim(T0), 0)

    def test_repeat_usage_keeps_status_recent(self):
        self.tracker.record(1, T0 - timedelta(hours=30))
        self.tracker.record(1, T0 - timedelta(hours=1))
        self.assertEqual(self.tracker.recently_used(T0), {1})

    def test_trim_drops_expired_entries_only(self):
        self.tracker.record(1, T0)
        self.tracker.record(2, T0 - timedelta(hours=25))
        self.tracker.record(3, T0 - timedelta(hours=48))

        self.assertEqual(self.tracker.trim(T0), 2)
        self.assertEqual(self.tracker.recently_used(T0), {1})
        # Nothing expired is left to resurface at an earlier read point
        self.assertEqual(self.tracker.recently_used(T0 - timedelta(hours=26)), set())

    def test_trim_filters_boundary_bucket(self):
        at = T0 + timedelta(minutes=30)
        self.tracker.record(1, T0 - timedelta(hours=24))               # boundary bucket, expired
        self.tracker.record(2, T0 - timedelta(hours=23, minutes=45))   # boundary bucket, expired
        self.tracker.record(3, T0 - timedelta(hours=23, minutes=15))   # boundary bucket, live
        self.tracker.record(4, T0 - timedelta(hours=30))               # older bucket
        self.tracker.record(5, T0)

        self.assertEqual(self.tracker.trim(at), 3)
        self.assertEqual(self.tracker.recently_used(at), {3, 5})
        self.assertEqual(self.tracker.trim(at), 0)

    def test_concurrent_records_are_all_kept(self):
        def worker(offset):
            for i in range(500):
                self.tracker.record(offset + i, T0 - timedelta(seconds=i))

        threads = [threading.Thread(target=worker, args=(n * 1000,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(self.tracker.recently_used(T0)), 4000)


class TestRedisUsageTracker(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.tracker = RedisUsageTracker(WINDOW, client=self.client)

    def test_record_adds_member_with_timestamp(self):
        self.assertTrue(self.tracker.record(5, T0))
        self.client.zadd.assert_called_once_with(USED_KEY, {"5": T0.timestamp()})

    def test_record_failure_is_reported_not_raised(self):
        self.client.zadd.side_effect = ConnectionError("redis down")
        self.assertFalse(self.tracker.record(5, T0))

    def test_recently_used_reads_window(self):
        self.client.zrangebyscore.return_value = ["1", "22"]

        self.assertEqual(self.tracker.recently_used(T0), {1, 22})
        cutoff = (T0 - WINDOW).timestamp()
        self.client.zrangebyscore.assert_called_once_with(
            USED_KEY, f"({cutoff}", T0.timestamp()
        )

    def test_recently_used_failure_raises_tracker_error(self):
        self.client.zrangebyscore.side_effect = ConnectionError("redis down")
        with self.assertRaises(UsageTrackerError):
            self.tracker.recently_used(T0)

    def test_trim_removes_up_to_cutoff(self):
        self.client.zremrangebyscore.return_value = 3

        self.assertEqual(self.tracker.trim(T0), 3)
        self.client.zremrangebyscore.assert_called_once_with(
            USED_KEY, "-inf", (T0 - WINDOW).timestamp()
        )

    def test_custom_key(self):
        tracker = RedisUsageTracker(WINDOW, client=self.client, key="staging:used")
        tracker.record(1, T0)
        self.assertEqual(self.client.zadd.call_args[0][0], "staging:used")

    @patch("redis.from_url")
    def test_connects_and_pings(self, mock_from_url):
        client = MagicMock()
        mock_from_url.return_value = client

        tracker = RedisUsageTracker(WINDOW, redis_url="redis://cache:6379/2")

        mock_from_url.assert_called_once_with("redis://cache:6379/2", decode_responses=True)
        client.ping.assert_called_once()
        self.assertIs(tracker.client, client)

    @patch("redis.from_url")
    def test_connection_failure_raises(self, mock_from_url):
        mock_from_url.return_value.ping.side_effect = ConnectionError("refused")
        with self.assertRaises(ConnectionError):
            RedisUsageTracker(WINDOW, redis_url="redis://nowhere:6379")


if __name__ == '__main__':
    unittest.main(verbosity=2)
