#!/usr/bin/env python3
"""
Tests for job and step timing
"""

import unittest
from datetime import datetime, timezone
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models import StepInfo
from timing import compute_job_timing, is_slow, parse_timestamp


class TestParseTimestamp(unittest.TestCase):
    """Test API timestamp parsing"""

    def test_zulu_suffix(self):
        self.assertEqual(parse_timestamp("2024-01-01T10:00:00Z"), datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))

    def test_missing_or_malformed(self):
        self.assertIsNone(parse_timestamp(None))
        self.assertIsNone(parse_timestamp(""))
        self.assertIsNone(parse_timestamp("not a date"))


class TestComputeJobTiming(unittest.TestCase):
    """Test duration and slow step detection"""

    def setUp(self):
        self.steps = [
            StepInfo("Set up job", "success", "2024-01-01T10:00:00Z", "2024-01-01T10:01:00Z", 1),
            StepInfo("Build", "success", "2024-01-01T10:01:00Z", "2024-01-01T10:13:00Z", 2),
            StepInfo("Test", "failure", "2024-01-01T10:13:00Z", "2024-01-01T10:18:00Z", 3),
        ]

    def test_long_step_is_slow(self):
        timing = compute_job_timing("build", self.steps)

        self.assertEqual(timing.job_duration_ms, 18 * 60 * 1000)
        self.assertEqual(timing.slowest_step.name, "Build")
        self.assertEqual(timing.slowest_step.duration_ms, 12 * 60 * 1000)
        self.assertEqual([s.is_slow for s in timing.steps], [False, True, False])

    def test_queue_time(self):
        timing = compute_job_timing("build", self.steps, "2024-01-01T09:59:30Z")
        self.assertEqual(timing.queue_time_ms, 30 * 1000)

    def test_queue_time_unknown(self):
        self.assertEqual(compute_job_timing("build", self.steps).queue_time_ms, 0)

    def test_missing_timestamps(self):
        steps = [
            StepInfo("Checkout", "success", "2024-01-01T10:00:00Z", "2024-01-01T10:00:10Z", 1),
            StepInfo("Skipped", "skipped", None, None, 2),
        ]
        timing = compute_job_timing("build", steps)
        self.assertEqual(timing.job_duration_ms, 10 * 1000)
        self.assertEqual(timing.steps[1].duration_ms, 0)
        self.assertEqual(timing.slowest_step.name, "Checkout")

    def test_no_steps(self):
        timing = compute_job_timing("build", [])
        self.assertEqual(timing.job_duration_ms, 0)
        self.assertIsNone(timing.slowest_step)
        self.assertEqual(timing.steps, [])

    def test_reversed_timestamps_clamped(self):
        steps = [StepInfo("Odd", "success", "2024-01-01T10:00:10Z", "2024-01-01T10:00:00Z", 1)]
        timing = compute_job_timing("build", steps)
        self.assertEqual(timing.steps[0].duration_ms, 0)
        self.assertIsNone(timing.slowest_step)

    def test_is_slow_thresholds(self):
        self.assertTrue(is_slow(5 * 60 * 1000 + 1, 0))
        self.assertFalse(is_slow(5 * 60 * 1000, 0))
        self.assertTrue(is_slow(61 * 1000, 100 * 1000))
        self.assertFalse(is_slow(60 * 1000, 100 * 1000))


if __name__ == "__main__":
    unittest.main()
