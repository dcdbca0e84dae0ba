import unittest

from tradewatch.data_sources.factory import build_data_source, DEFAULT_SOURCE_NAME
import tradewatch.data_sources.coingecko_client as coingecko
from tradewatch.data_sources.base import CallablePriceDataSource


class DummySettings:
    def __init__(self, **kwargs):
        self.price_source = DEFAULT_SOURCE_NAME
        self.coingecko_base_url = "https://api.example.com/v3"
        self.vs_currency = "eur"
        self.request_timeout_seconds = 4.0
        for k, v in kwargs.items():
            setattr(self, k, v)


class DummyResp:
    status_code = 200

    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class TestDataSourceFactory(unittest.TestCase):
    def test_build_coingecko_default(self):
        ds = build_data_source(DummySettings())
        self.assertIsInstance(ds, CallablePriceDataSource)

    def test_source_name_is_case_insensitive(self):
        ds = build_data_source(DummySettings(price_source="CoinGecko"))
        self.assertIsInstance(ds, CallablePriceDataSource)

    def test_unknown_source_raises(self):
        with self.assertRaises(ValueError):
            build_data_source(DummySettings(price_source="unknown-source"))

    def test_missing_base_url_raises(self):
        with self.assertRaises(ValueError):
            build_data_source(DummySettings(coingecko_base_url=""))

    def test_bound_settings_reach_the_request(self):
        calls = []

        class RecordingSession:
            def get(self, url, params=None, timeout=None):
                calls.append((url, params, timeout))
                return DummyResp({"bitcoin": {"eur": 40000.0, "eur_24h_change": 1.0}})

        orig = coingecko.session
        coingecko.session = RecordingSession()
        try:
            ds = build_data_source(DummySettings())
            raw = ds.fetch_quote("bitcoin")
        finally:
            coingecko.session = orig

        self.assertEqual(raw.price, 40000.0)
        url, params, timeout = calls[0]
        self.assertTrue(url.startswith("https://api.example.com/v3/"))
        self.assertEqual(params["vs_currencies"], "eur")
        self.assertEqual(timeout, 4.0)


if __name__ == "__main__":
    unittest.main()
