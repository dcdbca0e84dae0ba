import os
import unittest

from tradewatch.assets import AssetId
from tradewatch.config import Settings


class TestConfig(unittest.TestCase):
    def _with_env(self, **values):
        """Set TRADEWATCH_* variables for one test and restore them afterwards."""
        previous = {}
        for key, value in values.items():
            name = f"TRADEWATCH_{key}"
            previous[name] = os.environ.get(name)
            os.environ[name] = value

        def restore():
            for name, old in previous.items():
                if old is None:
                    os.environ.pop(name, None)
                else:
                    os.environ[name] = old

        self.addCleanup(restore)

    def test_settings_defaults(self):
        for name in ("TRADEWATCH_CACHE_TTL_SECONDS", "TRADEWATCH_TRACKED_ASSETS", "TRADEWATCH_API_KEY"):
            previous = os.environ.pop(name, None)
            if previous is not None:
                self.addCleanup(os.environ.__setitem__, name, previous)
        s = Settings()
        self.assertEqual(s.price_source, "coingecko")
        self.assertEqual(s.cache_ttl_seconds, 10.0)
        self.assertEqual(s.fetch_max_attempts, 3)
        self.assertEqual(s.refresh_interval_seconds, 15.0)
        self.assertEqual(s.chart_window_days, 30)
        self.assertEqual(s.tracked_assets, [AssetId.ICP, AssetId.BTC])
        self.assertEqual(s.selected_asset, AssetId.ICP)
        self.assertEqual(s.fallback_prices[AssetId.BTC], 60000.0)
        self.assertIsNone(s.api_key)

    def test_settings_env_override(self):
        self._with_env(
            RECOMMENDATION_BASE_URL="http://decisions.local:9000/",
            CACHE_TTL_SECONDS="2.5",
            SELECTED_ASSET="BTC",
        )
        s = Settings()
        self.assertEqual(s.recommendation_base_url, "http://decisions.local:9000")
        self.assertEqual(s.cache_ttl_seconds, 2.5)
        self.assertEqual(s.selected_asset, AssetId.BTC)

    def test_tracked_assets_json_list_is_deduplicated(self):
        self._with_env(TRACKED_ASSETS='["BTC", "ICP", "BTC"]')
        s = Settings()
        self.assertEqual(s.tracked_assets, [AssetId.BTC, AssetId.ICP])

    def test_max_attempts_must_be_positive(self):
        self._with_env(FETCH_MAX_ATTEMPTS="0")
        with self.assertRaises(ValueError):
            Settings()


if __name__ == "__main__":
    unittest.main()
