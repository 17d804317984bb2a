from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

import pytest
import requests

from countries import sources
from countries.merge import MergedCountryRecord

REFRESHED_AT = datetime(2025, 10, 22, 12, 30, tzinfo=timezone.utc)

COUNTRIES_PAYLOAD: List[Dict[str, Any]] = [
    {
        "name": "Nigeria",
        "capital": "Abuja",
        "region": "Africa",
        "population": 206139587,
        "flag": "https://flagcdn.com/ng.svg",
        "currencies": [{"code": "NGN", "name": "Nigerian naira", "symbol": "₦"}],
    },
    {
        "name": "Ghana",
        "capital": "Accra",
        "region": "africa",
        "population": 31072945,
        "flag": "https://flagcdn.com/gh.svg",
        "currencies": [{"code": "ghs", "name": "Ghanaian cedi", "symbol": "₵"}],
    },
    {
        "name": "Germany",
        "capital": "Berlin",
        "region": "Europe",
        "population": 83240525,
        "flag": "https://flagcdn.com/de.svg",
        "currencies": [{"code": "EUR", "name": "Euro", "symbol": "€"}],
    },
    {
        "name": "Antarctica",
        "region": "Polar",
        "population": 1000,
        "flag": "https://flagcdn.com/aq.svg",
    },
    {
        "name": "Wakanda",
        "capital": "Birnin Zana",
        "region": "Africa",
        "population": 1000,
        "currencies": [{"code": "WKD"}],
    },
    # dropped by validation: no name / no population
    {"capital": "Nowhere", "region": "Oceania", "population": 5, "currencies": [{"code": "AUD"}]},
    {"name": "Atlantis", "region": "Europe", "currencies": [{"code": "EUR"}]},
]

RATES_PAYLOAD: Dict[str, Any] = {
    "result": "success",
    "base_code": "USD",
    "time_last_update_unix": 1761091351,
    "rates": {"USD": 1, "NGN": 1600.23, "GHS": 15.34, "EUR": 0.92, "AUD": 1.53},
}


class StubResponse:
    def __init__(self, url: str, payload: Any, *, status: int = 200) -> None:
        self.url = url
        self.status_code = status
        self._payload = payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return copy.deepcopy(self._payload)


class StubUpstream:
    """Routes ``requests.get`` calls by URL to canned payloads."""

    def __init__(self) -> None:
        self.routes: Dict[str, List[Any]] = {}
        self.calls: List[str] = []

    def set(self, url: str, *outcomes: Any) -> None:
        # each outcome is a payload, a (payload, status) tuple or an exception to raise
        self.routes[url] = list(outcomes)

    def get(self, url: str, timeout: float | None = None, **kwargs: Any) -> StubResponse:
        self.calls.append(url)
        outcomes = self.routes[url]
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, tuple):
            payload, status = outcome
            return StubResponse(url, payload, status=status)
        return StubResponse(url, outcome)


@pytest.fixture(autouse=True)
def _isolated_cache(settings, tmp_path):
    settings.COUNTRIES_CACHE_DIR = str(tmp_path / "cache")
    settings.COUNTRIES_FETCH_ATTEMPTS = 1
    settings.COUNTRIES_UPSERT_WORKERS = 1


@pytest.fixture
def upstream(monkeypatch: pytest.MonkeyPatch, settings) -> StubUpstream:
    stub = StubUpstream()
    stub.set(settings.COUNTRIES_API_URL, COUNTRIES_PAYLOAD)
    stub.set(settings.EXCHANGE_RATES_API_URL, RATES_PAYLOAD)
    monkeypatch.setattr(sources.requests, "get", stub.get)
    return stub


@pytest.fixture
def make_record() -> Callable[..., MergedCountryRecord]:
    def _make(**overrides: Any) -> MergedCountryRecord:
        values: Dict[str, Any] = {
            "name": "Nigeria",
            "capital": "Abuja",
            "region": "Africa",
            "population": 206139587,
            "currency_code": "NGN",
            "exchange_rate": 1600.23,
            "estimated_gdp": 193218837.5,
            "flag_url": "https://flagcdn.com/ng.svg",
            "last_refreshed_at": REFRESHED_AT,
        }
        values.update(overrides)
        return MergedCountryRecord(**values)

    return _make
