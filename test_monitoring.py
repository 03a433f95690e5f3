"""
Unit tests for LLM call monitoring.
"""

import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

from monitoring import LLMMonitor, MonitoredLLMClient


class TestMonitoredClient(unittest.TestCase):

    def setUp(self):
        self.monitor = LLMMonitor()
        self.raw = MagicMock()
        self.client = MonitoredLLMClient(self.raw, self.monitor)

    def test_successful_call_tracked(self):
        self.raw.chat.completions.create.return_value = SimpleNamespace(
            choices=[],
            usage=SimpleNamespace(prompt_tokens=1000, completion_tokens=500)
        )

        self.client.chat.completions.create(model="gpt-4o-mini", messages=[], operation="seed_extraction")

        # operation is consumed by the wrapper, not forwarded
        self.assertNotIn("operation", self.raw.chat.completions.create.call_args.kwargs)
        summary = self.monitor.get_summary()
        self.assertEqual(summary["total_calls"], 1)
        self.assertEqual(summary["total_tokens"], 1500)
        self.assertAlmostEqual(summary["total_cost_usd"], 0.00045, places=3)
        self.assertEqual(summary["by_operation"]["seed_extraction"]["count"], 1)

    def test_failed_call_tracked_and_reraised(self):
        self.raw.chat.completions.create.side_effect = RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            self.client.chat.completions.create(model="gpt-4o-mini", messages=[], operation="day_planning")

        summary = self.monitor.get_summary()
        self.assertEqual(summary["total_errors"], 1)
        self.assertEqual(summary["success_rate"], 0.0)
        self.assertEqual(summary["by_operation"]["day_planning"]["errors"], 1)

    def test_missing_usage(self):
        self.raw.chat.completions.create.return_value = SimpleNamespace(choices=[])
        self.client.chat.completions.create(model="unknown-model", messages=[])
        summary = self.monitor.get_summary()
        self.assertEqual(summary["total_tokens"], 0)
        self.assertIn("general", summary["by_operation"])


if __name__ == '__main__':
    unittest.main()
