import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from .estimators import estimate_gdp, get_multiplier
from .sources import ExchangeRateSnapshot, RawCountryFact

logger = logging.getLogger(__name__)

NO_CURRENCY = "N/A"


@dataclass
class MergedCountryRecord:
    name: Optional[str]
    capital: Optional[str]
    region: Optional[str]
    population: Optional[int]
    currency_code: Optional[str]
    exchange_rate: Optional[float]
    estimated_gdp: Optional[float]
    flag_url: Optional[str]
    last_refreshed_at: datetime

    def field_values(self) -> dict:
        """Every column except the name, as persisted on insert or update."""
        values = asdict(self)
        values.pop("name")
        return values


def normalize_region(region: Optional[str]) -> Optional[str]:
    if not region or not region.strip():
        return None
    return region.strip().title()


def primary_currency_code(fact: RawCountryFact) -> str:
    if fact.currencies and fact.currencies[0].code:
        return fact.currencies[0].code.upper()
    return NO_CURRENCY


def merge_country(
    fact: RawCountryFact,
    snapshot: ExchangeRateSnapshot,
    refreshed_at: datetime,
    multiplier: Callable[[], float],
) -> MergedCountryRecord:
    code = primary_currency_code(fact)
    rate = None if code == NO_CURRENCY else snapshot.rate_for(code)
    return MergedCountryRecord(
        name=fact.name,
        capital=fact.capital,
        region=normalize_region(fact.region),
        population=fact.population,
        currency_code=code,
        exchange_rate=rate,
        estimated_gdp=estimate_gdp(fact.population, rate, multiplier),
        flag_url=fact.flag,
        last_refreshed_at=refreshed_at,
    )


def merge_country_data(
    facts: Sequence[RawCountryFact],
    snapshot: ExchangeRateSnapshot,
    *,
    refreshed_at: datetime,
    multiplier: Optional[Callable[[], float]] = None,
) -> List[MergedCountryRecord]:
    """
    Join country facts with the rate snapshot by each country's first
    currency. One record per fact, in input order; a fact that cannot be
    merged is logged and left out.
    """
    if multiplier is None:
        multiplier = get_multiplier()
    records = []
    for fact in facts:
        try:
            records.append(merge_country(fact, snapshot, refreshed_at, multiplier))
        except (ArithmeticError, AttributeError, ValueError, TypeError) as exc:
            logger.warning("Dropping %r from refresh: could not merge (%s)", fact.name, exc)
    return records
