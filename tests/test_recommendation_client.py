import unittest

import requests

from tradewatch.domain import PriceQuote, signal_for
from tradewatch.errors import RecommendationServiceError
from tradewatch.recommendation_client import RecommendationClient


class DummyResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []
        self.gets = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.error:
            raise self.error
        return self.response

    def get(self, url, params=None, timeout=None):
        self.gets.append((url, params, timeout))
        if self.error:
            raise self.error
        return self.response


QUOTE = PriceQuote(price=5.5, change_24h=2.3, is_live=True)


class TestRecommendationClient(unittest.IsolatedAsyncioTestCase):
    async def test_get_recommendation_posts_price_and_change(self):
        session = FakeSession(DummyResponse(200, {"recommendation": "BUY: momentum"}))
        client = RecommendationClient("http://decide.test/", timeout=5, session=session)

        label = await client.get_recommendation("icp", QUOTE)

        self.assertEqual(label, "BUY: momentum")
        url, payload, timeout = session.posts[0]
        self.assertEqual(url, "http://decide.test/recommendation")
        self.assertEqual(payload, {"asset": "ICP", "price": 5.5, "change24h": 2.3})
        self.assertEqual(timeout, 5)

    async def test_non_200_raises_without_retry(self):
        session = FakeSession(DummyResponse(500, text="boom"))
        client = RecommendationClient("http://decide.test", session=session)
        with self.assertRaises(RecommendationServiceError):
            await client.get_recommendation("BTC", QUOTE)
        self.assertEqual(len(session.posts), 1)

    async def test_transport_error_raises(self):
        session = FakeSession(error=requests.ConnectionError("refused"))
        client = RecommendationClient("http://decide.test", session=session)
        with self.assertRaises(RecommendationServiceError):
            await client.get_recommendation("BTC", QUOTE)

    async def test_missing_label_raises(self):
        for payload in ({"recommendation": ""}, {"other": 1}, ["BUY"]):
            with self.subTest(payload=payload):
                client = RecommendationClient("http://decide.test", session=FakeSession(DummyResponse(200, payload)))
                with self.assertRaises(RecommendationServiceError):
                    await client.get_recommendation("ICP", QUOTE)

    async def test_get_history_parses_records(self):
        payload = [
            {"timestamp": 1704110400000, "price": 5.5, "priceChange": 2.3, "recommendation": "BUY"},
            {"timestamp": 1704114000000, "price": 5.4, "priceChange": -0.4, "recommendation": "WAIT"},
        ]
        session = FakeSession(DummyResponse(200, payload))
        client = RecommendationClient("http://decide.test", session=session)

        records = await client.get_history("ICP")

        self.assertEqual(len(records), 2)
        self.assertEqual(records[1].price_change, -0.4)
        self.assertEqual(session.gets[0][1], {"asset": "ICP"})

    async def test_get_history_rejects_malformed_entries(self):
        session = FakeSession(DummyResponse(200, [{"timestamp": "soon"}]))
        client = RecommendationClient("http://decide.test", session=session)
        with self.assertRaises(RecommendationServiceError):
            await client.get_history("ICP")

    async def test_get_history_normalizes_nanosecond_timestamps(self):
        payload = [
            {"timestamp": 1_700_000_000_123_456_789, "price": 5.5, "priceChange": 2.3, "recommendation": "BUY"},
            {"timestamp": 1_700_000_000_123_456, "price": 5.4, "priceChange": -0.4, "recommendation": "WAIT"},
        ]
        client = RecommendationClient("http://decide.test", session=FakeSession(DummyResponse(200, payload)))

        records = await client.get_history("ICP")

        self.assertEqual([r.timestamp for r in records], [1_700_000_000_123, 1_700_000_000_123])

    async def test_get_history_rejects_out_of_range_timestamps(self):
        for ts in (-5, 10 ** 30):
            payload = [{"timestamp": ts, "price": 1.0, "priceChange": 0.0, "recommendation": "BUY"}]
            client = RecommendationClient("http://decide.test", session=FakeSession(DummyResponse(200, payload)))
            with self.subTest(ts=ts):
                with self.assertRaises(RecommendationServiceError):
                    await client.get_history("ICP")


class TestSignalFor(unittest.TestCase):
    def test_buy_and_wait(self):
        self.assertEqual(signal_for("STRONG BUY"), "buy")
        self.assertEqual(signal_for("Wait for a dip"), "wait")
        self.assertIsNone(signal_for(None))


if __name__ == "__main__":
    unittest.main()
