"""
Adapters for the two upstream feeds.

Each fetch performs exactly one HTTP call and decodes the payload into an
immutable shape. Any network, HTTP or decoding problem surfaces as
``SourceUnavailable``; retrying is left to the caller.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import requests
from django.conf import settings
from requests.exceptions import RequestException

from .exceptions import SourceUnavailable

logger = logging.getLogger(__name__)

COUNTRIES_SOURCE = "countries"
EXCHANGE_RATES_SOURCE = "exchange_rates"


@dataclass(frozen=True)
class Currency:
    code: Optional[str]
    name: Optional[str] = None
    symbol: Optional[str] = None


@dataclass(frozen=True)
class RawCountryFact:
    name: Optional[str]
    capital: Optional[str] = None
    region: Optional[str] = None
    population: Optional[int] = None
    flag: Optional[str] = None
    currencies: Tuple[Currency, ...] = ()


@dataclass(frozen=True)
class ExchangeRateSnapshot:
    base: Optional[str]
    rates: Dict[str, float] = field(default_factory=dict)
    timestamp: Optional[datetime] = None

    def rate_for(self, code: Optional[str]) -> Optional[float]:
        """Rate for ``code``, or None when the snapshot has no entry for it."""
        if not code:
            return None
        return self.rates.get(code.upper())


def _get_json(source: str, url: str):
    try:
        resp = requests.get(url, timeout=settings.COUNTRIES_HTTP_TIMEOUT)
        resp.raise_for_status()
    except RequestException as exc:
        raise SourceUnavailable(source, f"request to {url} failed: {exc}") from exc
    try:
        return resp.json()
    except ValueError as exc:
        raise SourceUnavailable(source, f"invalid JSON from {url}") from exc


def _text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _population(value) -> Optional[int]:
    # bool is an int subclass; upstream never means True/False as a headcount
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    return None


def _currencies(items) -> Tuple[Currency, ...]:
    if not isinstance(items, list):
        return ()
    return tuple(
        Currency(code=_text(c.get("code")), name=_text(c.get("name")), symbol=_text(c.get("symbol")))
        for c in items
        if isinstance(c, dict)
    )


def decode_country_facts(payload) -> List[RawCountryFact]:
    if not isinstance(payload, list):
        raise SourceUnavailable(COUNTRIES_SOURCE, "expected a JSON array of countries")

    facts = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            logger.warning("Skipping country entry %d: not an object", index)
            continue
        facts.append(
            RawCountryFact(
                name=_text(item.get("name")),
                capital=_text(item.get("capital")),
                region=_text(item.get("region")),
                population=_population(item.get("population")),
                flag=_text(item.get("flag")),
                currencies=_currencies(item.get("currencies")),
            )
        )
    return facts


def decode_exchange_rates(payload) -> ExchangeRateSnapshot:
    if not isinstance(payload, dict):
        raise SourceUnavailable(EXCHANGE_RATES_SOURCE, "expected a JSON object")
    if payload.get("result") == "error":
        raise SourceUnavailable(EXCHANGE_RATES_SOURCE, f"provider error: {payload.get('error-type', 'unknown')}")

    raw_rates = payload.get("rates")
    if not isinstance(raw_rates, dict):
        raise SourceUnavailable(EXCHANGE_RATES_SOURCE, "response has no 'rates' mapping")

    rates = {}
    for code, value in raw_rates.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning("Dropping exchange rate for %s: %r is not a number", code, value)
            continue
        try:
            rate = float(value)
        except OverflowError:
            rate = math.inf
        # the JSON decoder accepts Infinity and NaN
        if not math.isfinite(rate):
            logger.warning("Dropping exchange rate for %s: %r is not finite", code, value)
            continue
        rates[str(code).upper()] = rate

    timestamp = None
    updated = payload.get("time_last_update_unix")
    if isinstance(updated, (int, float)) and not isinstance(updated, bool):
        timestamp = datetime.fromtimestamp(updated, tz=timezone.utc)

    return ExchangeRateSnapshot(base=_text(payload.get("base_code")), rates=rates, timestamp=timestamp)


def fetch_country_facts() -> List[RawCountryFact]:
    facts = decode_country_facts(_get_json(COUNTRIES_SOURCE, settings.COUNTRIES_API_URL))
    logger.info("Fetched %d countries", len(facts))
    return facts


def fetch_exchange_rates() -> ExchangeRateSnapshot:
    snapshot = decode_exchange_rates(_get_json(EXCHANGE_RATES_SOURCE, settings.EXCHANGE_RATES_API_URL))
    logger.info("Fetched %d exchange rates (base %s)", len(snapshot.rates), snapshot.base)
    return snapshot
