"""
Tests for the business register clients: HTTP client against a mocked transport
and the deterministic mock register.
Run from project root: python -m pytest tests/test_registry.py -v
"""
import json
import unittest
from datetime import date

import httpx

from services.registry import HttpBusinessRegistry, MockBusinessRegistry, RegistryError, map_entity_type
from utils.abn import clean_abn, is_valid_abn

VALID_ABN = "51824753556"


def _registry(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpBusinessRegistry("https://edge.example.com/functions/v1/", api_key="anon-key", client=client), client


class TestHttpBusinessRegistry(unittest.IsolatedAsyncioTestCase):
    async def test_lookup_maps_camel_case_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["apikey"] = request.headers.get("apikey")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "found": True,
                "abnStatus": "Active",
                "abnRegisteredDate": "2018-07-01",
                "gstRegistered": True,
                "gstRegisteredDate": "2018-08-01",
                "entityName": "ACME TRANSPORT PTY LTD",
                "entityType": "Australian Private Company",
                "state": "NSW",
                "postcode": "2000",
            })

        registry, client = _registry(handler)
        async with client:
            lookup = await registry.lookup("51 824 753 556")
        self.assertEqual(seen["url"], "https://edge.example.com/functions/v1/abn-lookup")
        self.assertEqual(seen["apikey"], "anon-key")
        self.assertEqual(seen["body"], {"abn": VALID_ABN})
        self.assertEqual(lookup.abn, VALID_ABN)
        self.assertEqual(lookup.entity_type, "company")
        self.assertEqual(lookup.abn_registered_date, date(2018, 7, 1))
        self.assertTrue(lookup.gst_registered)
        self.assertEqual(lookup.state, "NSW")

    async def test_lookup_not_found_returns_none(self):
        registry, client = _registry(lambda request: httpx.Response(200, json={"found": False, "error": "No match"}))
        async with client:
            self.assertIsNone(await registry.lookup(VALID_ABN))

    async def test_invalid_abn_skips_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        registry, client = _registry(handler)
        async with client:
            self.assertIsNone(await registry.lookup("12345678901"))
        self.assertEqual(calls, [])

    async def test_http_error_raises_registry_error(self):
        registry, client = _registry(lambda request: httpx.Response(503, text="unavailable"))
        async with client:
            with self.assertRaises(RegistryError):
                await registry.lookup(VALID_ABN)

    async def test_invalid_json_raises_registry_error(self):
        registry, client = _registry(lambda request: httpx.Response(200, text="<html>"))
        async with client:
            with self.assertRaises(RegistryError):
                await registry.search_by_name("Acme")

    async def test_search_sorts_by_score_and_limits(self):
        def handler(request):
            body = json.loads(request.content)
            self.assertEqual(body, {"name": "Acme", "maxResults": 2})
            return httpx.Response(200, json={"results": [
                {"abn": "11 111 111 111", "entityName": "Acme Low", "state": "VIC", "score": 40},
                {"abn": "51 824 753 556", "entityName": "Acme High", "state": "NSW", "score": 95},
                {"abn": "22 222 222 222", "entityName": "Acme Mid", "state": "QLD", "score": 70},
            ]})

        registry, client = _registry(handler)
        async with client:
            results = await registry.search_by_name("Acme", max_results=2)
        self.assertEqual([r.entity_name for r in results], ["Acme High", "Acme Mid"])
        self.assertEqual(results[0].option_label, "Acme High (NSW) - ABN: 51 824 753 556")

    async def test_short_search_text_returns_nothing(self):
        registry, client = _registry(lambda request: httpx.Response(500))
        async with client:
            self.assertEqual(await registry.search_by_name("A"), [])


class TestMockBusinessRegistry(unittest.IsolatedAsyncioTestCase):
    async def test_lookup_is_deterministic(self):
        registry = MockBusinessRegistry(today=date(2025, 6, 1))
        first = await registry.lookup(VALID_ABN)
        second = await registry.lookup("51 824 753 556")
        self.assertEqual(first, second)
        self.assertEqual(first.abn, VALID_ABN)
        self.assertLess(first.abn_registered_date, date(2025, 6, 1))

    async def test_lookup_invalid_abn(self):
        self.assertIsNone(await MockBusinessRegistry().lookup("123"))

    async def test_search_returns_valid_abns(self):
        results = await MockBusinessRegistry().search_by_name("smith plumbing")
        self.assertEqual(len(results), 3)
        for result in results:
            self.assertTrue(is_valid_abn(clean_abn(result.abn)))
            self.assertTrue(result.entity_name.startswith("Smith Plumbing"))


class TestEntityTypeMapping(unittest.TestCase):
    def test_known_types(self):
        self.assertEqual(map_entity_type("Australian Private Company"), "company")
        self.assertEqual(map_entity_type("Discretionary Trading Trust"), "trust")
        self.assertEqual(map_entity_type("Individual/Sole Trader"), "sole_trader")
        self.assertEqual(map_entity_type("Family Partnership"), "partnership")

    def test_unknown_defaults_to_company(self):
        self.assertEqual(map_entity_type("Something else"), "company")
        self.assertEqual(map_entity_type(""), "company")


if __name__ == "__main__":
    unittest.main()
