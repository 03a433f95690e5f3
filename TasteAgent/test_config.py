"""
Unit tests for settings loading.
"""

import os
import unittest
from unittest.mock import patch

from TasteAgent.config import Settings, default_duration
from TasteAgent.errors import ConfigurationError


class TestSettings(unittest.TestCase):

    @patch.dict(os.environ, {
        'OPENAI_API_KEY': 'sk-env',
        'QLOO_API_KEY': '',
        'QLOO_BASE_URL': 'https://qloo.example.com/',
        'QLOO_TIMEOUT_SECONDS': '5'
    })
    def test_from_env(self):
        settings = Settings.from_env()
        self.assertEqual(settings.openai_api_key, 'sk-env')
        self.assertIsNone(settings.qloo_api_key)
        self.assertEqual(settings.insights_url, 'https://qloo.example.com/v2/insights')
        self.assertEqual(settings.qloo_timeout, 5.0)
        self.assertEqual(settings.key_status(), {'openaiKey': True, 'qlooKey': False})

    def test_require_keys(self):
        settings = Settings()
        with self.assertRaises(ConfigurationError) as ctx:
            settings.require_openai()
        self.assertEqual(ctx.exception.status_code, 500)
        with self.assertRaises(ConfigurationError):
            settings.require_qloo()

    def test_default_durations(self):
        self.assertEqual(default_duration('food'), 90)
        self.assertEqual(default_duration('activity'), 120)
        self.assertEqual(default_duration('movie'), 60)
        self.assertEqual(default_duration(None), 60)


if __name__ == '__main__':
    unittest.main()
