import datetime as dt
import unittest

import requests

from tradewatch.data_sources import coingecko_client
from tradewatch.errors import MalformedPayloadError, UpstreamError


class DummyResp:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class RecordingSession:
    def __init__(self, resp):
        self.resp = resp
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if isinstance(self.resp, Exception):
            raise self.resp
        return self.resp


def _make_price_payload():
    return {
        "internet-computer": {
            "usd": 5.5,
            "usd_24h_change": 2.3,
            "last_updated_at": 1704110400,
        }
    }


def _make_chart_payload(n=31):
    start = 1701475200000
    day = 86_400_000
    return {"prices": [[start + i * day, 5.0 + i * 0.1] for i in range(n)]}


class TestParsers(unittest.TestCase):
    def test_parse_simple_price(self):
        quote = coingecko_client.parse_simple_price(_make_price_payload(), "internet-computer")
        self.assertEqual(quote.price, 5.5)
        self.assertEqual(quote.change_24h, 2.3)
        self.assertEqual(quote.last_updated_at, dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.timezone.utc))

    def test_missing_change_defaults_to_zero(self):
        quote = coingecko_client.parse_simple_price({"bitcoin": {"usd": 100}}, "bitcoin")
        self.assertEqual(quote.change_24h, 0.0)
        self.assertIsNone(quote.last_updated_at)

    def test_malformed_price_payloads_raise(self):
        bad_payloads = [
            None,
            [],
            {},
            {"internet-computer": None},
            {"internet-computer": {"usd": "5.5"}},
            {"internet-computer": {"usd": True}},
            {"internet-computer": {"usd": -1}},
            {"internet-computer": {"usd": float("nan")}},
            {"internet-computer": {"usd": 5.5, "usd_24h_change": "up"}},
        ]
        for payload in bad_payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(MalformedPayloadError):
                    coingecko_client.parse_simple_price(payload, "internet-computer")

    def test_parse_market_chart_preserves_order(self):
        payload = {"prices": [[3000, 3.0], [1000, 1.0], [2000, 2.0]]}
        points = coingecko_client.parse_market_chart(payload)
        self.assertEqual([p.value for p in points], [3.0, 1.0, 2.0])
        self.assertEqual(points[1].time, dt.datetime(1970, 1, 1, 0, 0, 1, tzinfo=dt.timezone.utc))

    def test_malformed_chart_payloads_raise(self):
        for payload in (None, {}, {"prices": None}, {"prices": [[1, 2, 3]]}, {"prices": [["a", 1]]}, {"prices": [5]}, {"prices": []}):
            with self.subTest(payload=payload):
                with self.assertRaises(MalformedPayloadError):
                    coingecko_client.parse_market_chart(payload)


class TestCoinGeckoClient(unittest.TestCase):
    def setUp(self):
        self._orig_session = coingecko_client.session

    def tearDown(self):
        coingecko_client.session = self._orig_session

    def test_fetch_simple_price(self):
        session = RecordingSession(DummyResp(_make_price_payload()))
        coingecko_client.session = session

        quote = coingecko_client.fetch_simple_price("internet-computer", base_url="https://cg.test/api/v3")
        self.assertEqual(quote.price, 5.5)
        url, params, timeout = session.calls[0]
        self.assertEqual(url, "https://cg.test/api/v3/simple/price")
        self.assertEqual(params["ids"], "internet-computer")
        self.assertEqual(params["include_24hr_change"], "true")
        self.assertEqual(timeout, coingecko_client.DEFAULT_TIMEOUT_SECONDS)

    def test_fetch_market_chart(self):
        session = RecordingSession(DummyResp(_make_chart_payload()))
        coingecko_client.session = session

        points = coingecko_client.fetch_market_chart("bitcoin", 30)
        self.assertEqual(len(points), 31)
        url, params, _timeout = session.calls[0]
        self.assertTrue(url.endswith("/coins/bitcoin/market_chart"))
        self.assertEqual(params, {"vs_currency": "usd", "days": 30, "interval": "daily"})

    def test_http_error_maps_to_upstream_error(self):
        coingecko_client.session = RecordingSession(DummyResp({}, status_code=429))
        with self.assertRaises(UpstreamError):
            coingecko_client.fetch_simple_price("bitcoin")

    def test_transport_error_maps_to_upstream_error(self):
        coingecko_client.session = RecordingSession(requests.ConnectionError("down"))
        with self.assertRaises(UpstreamError):
            coingecko_client.fetch_market_chart("bitcoin")

    def test_non_json_body_is_malformed(self):
        coingecko_client.session = RecordingSession(DummyResp(ValueError("no json")))
        with self.assertRaises(MalformedPayloadError):
            coingecko_client.fetch_simple_price("bitcoin")


if __name__ == "__main__":
    unittest.main()
