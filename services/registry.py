"""
Business register (ABN) lookup and name search.
HttpBusinessRegistry calls the abn-lookup / abn-search edge functions that wrap the
ABR XML API; MockBusinessRegistry returns deterministic data for development and tests.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError

from config import settings
from schemas.application import EntityType, RegistryLookup, RegistrySearchResult
from utils.abn import clean_abn, format_abn, is_valid_abn
from utils.case import dict_keys_to_snake
from utils.parsing import parse_date

logger = logging.getLogger(__name__)

# ABR entity type text (matched case-insensitively as a substring) -> entity type
ENTITY_TYPE_MAP: list[tuple[str, EntityType]] = [
    ("Australian Private Company", "company"),
    ("Australian Public Company", "company"),
    ("Private Company", "company"),
    ("Public Company", "company"),
    ("Discretionary Trading Trust", "trust"),
    ("Family Trust", "trust"),
    ("Unit Trust", "trust"),
    ("Fixed Trust", "trust"),
    ("Hybrid Trust", "trust"),
    ("Trust", "trust"),
    ("Sole Trader", "sole_trader"),
    ("Individual", "sole_trader"),
    ("Partnership", "partnership"),
]


class RegistryError(Exception):
    """The register could not be reached or answered with something unusable."""


class BusinessRegistry(Protocol):
    async def lookup(self, abn: str) -> Optional[RegistryLookup]:
        ...

    async def search_by_name(self, name: str, max_results: int = 3) -> list[RegistrySearchResult]:
        ...


def map_entity_type(text: str) -> EntityType:
    """Map ABR entity type text to our entity type; unknown text maps to company."""
    lowered = (text or "").lower()
    for needle, entity_type in ENTITY_TYPE_MAP:
        if needle.lower() in lowered:
            return entity_type
    return "company"


@asynccontextmanager
async def _client_context(client: Optional[httpx.AsyncClient], timeout: float):
    if client is not None:
        yield client
        return
    managed_client = httpx.AsyncClient(timeout=timeout)
    try:
        yield managed_client
    finally:
        await managed_client.aclose()


class HttpBusinessRegistry:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    async def _post(self, function: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/{function}"
        try:
            async with _client_context(self._client, self.timeout) as http_client:
                response = await http_client.post(url, json=payload, headers=self._headers())
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise RegistryError(f"{function} request failed: {e}") from e
        except ValueError as e:
            raise RegistryError(f"{function} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise RegistryError(f"{function} returned {type(data).__name__}, expected object")
        return dict_keys_to_snake(data)

    async def lookup(self, abn: str) -> Optional[RegistryLookup]:
        clean = clean_abn(abn)
        if not is_valid_abn(clean):
            return None
        data = await self._post("abn-lookup", {"abn": clean})
        if not data.get("found"):
            logger.info("ABN %s not found: %s", clean, data.get("error"))
            return None
        try:
            return RegistryLookup(
                abn=clean,
                abn_status=data.get("abn_status") or "Active",
                abn_registered_date=parse_date(data.get("abn_registered_date") or data.get("abn_status_from_date")),
                gst_registered=bool(data.get("gst_registered")),
                gst_registered_date=parse_date(data.get("gst_registered_date")),
                entity_name=data.get("entity_name") or "",
                entity_type=map_entity_type(data.get("entity_type") or ""),
                state=data.get("state"),
                postcode=data.get("postcode"),
                business_address=data.get("business_address"),
            )
        except ValidationError as e:
            raise RegistryError(f"Malformed abn-lookup payload: {e}") from e

    async def search_by_name(self, name: str, max_results: int = 3) -> list[RegistrySearchResult]:
        if not name or len(name.strip()) < 2:
            return []
        data = await self._post("abn-search", {"name": name.strip(), "maxResults": max_results})
        if data.get("error"):
            raise RegistryError(f"abn-search error: {data['error']}")
        try:
            results = [RegistrySearchResult.model_validate(r) for r in data.get("results") or []]
        except ValidationError as e:
            raise RegistryError(f"Malformed abn-search payload: {e}") from e
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:max_results]


def _months_before(d: date, months: int) -> date:
    total = d.year * 12 + (d.month - 1) - months
    return date(total // 12, total % 12 + 1, min(d.day, 28))


class MockBusinessRegistry:
    """Deterministic register: the same ABN or search text always yields the same data."""

    INDUSTRIES = ["Construction", "Transport", "Services", "Manufacturing", "Retail", "Technology"]
    SUFFIXES = ["Pty Ltd", "Holdings Pty Ltd", "Group Pty Ltd", "Australia Pty Ltd"]
    STATES = ["NSW", "VIC", "QLD", "WA", "SA"]
    ENTITY_TYPES: list[EntityType] = ["company", "trust", "sole_trader", "partnership"]
    SEARCH_BUSINESSES = [
        ("Pty Ltd", "Australian Private Company"),
        ("Holdings Pty Ltd", "Australian Private Company"),
        ("Group", "Discretionary Trading Trust"),
        ("Services", "Sole Trader"),
        ("Australia", "Australian Private Company"),
    ]

    def __init__(self, today: Optional[date] = None):
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    async def lookup(self, abn: str) -> Optional[RegistryLookup]:
        clean = clean_abn(abn)
        if not is_valid_abn(clean):
            return None
        seed = int(clean[:4])
        registered = _months_before(self.today, ((seed % 10) + 1) * 12 + seed % 12)
        entity_type = self.ENTITY_TYPES[seed % 4]
        gst_registered = seed % 10 != 0
        industry = self.INDUSTRIES[seed % len(self.INDUSTRIES)]
        suffix = self.SUFFIXES[seed % len(self.SUFFIXES)] if entity_type == "company" else ""
        logger.debug("Mock ABN lookup for %s", clean)
        return RegistryLookup(
            abn=clean,
            abn_status="Active",
            abn_registered_date=registered,
            gst_registered=gst_registered,
            gst_registered_date=_months_before(registered, -1) if gst_registered else None,
            entity_name=f"{industry} {suffix}".strip(),
            entity_type=entity_type,
            state=self.STATES[seed % len(self.STATES)],
            postcode=str(2000 + seed % 8000),
            business_address=f"{100 + seed % 900} {industry} Street",
        )

    async def search_by_name(self, name: str, max_results: int = 3) -> list[RegistrySearchResult]:
        if not name or len(name.strip()) < 2:
            return []
        seed = sum(ord(c) for c in name.lower())
        display_name = " ".join(w.capitalize() for w in name.split())
        results = []
        for i in range(min(max_results, 3)):
            suffix, entity_type = self.SEARCH_BUSINESSES[(seed + i) % len(self.SEARCH_BUSINESSES)]
            candidate = 51824753556 + seed + i * 1000
            while not is_valid_abn(str(candidate)):
                candidate += 1
            results.append(RegistrySearchResult(
                abn=format_abn(str(candidate)),
                entity_name=f"{display_name} {suffix}",
                entity_type=entity_type,
                state=self.STATES[(seed + i) % len(self.STATES)],
                postcode=str(2000 + (seed + i) % 6000),
                score=100 - i * 10,
            ))
        return results


def build_registry() -> BusinessRegistry:
    if settings.use_mock_registry:
        logger.info("No registry URL configured, using mock business register")
        return MockBusinessRegistry()
    return HttpBusinessRegistry(
        settings.registry_base_url,
        api_key=settings.registry_api_key,
        timeout=settings.registry_timeout_seconds,
    )
