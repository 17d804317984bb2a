"""
The refresh cycle: fetch -> merge -> validate & persist -> report.

Both feeds must be fetched before anything is merged; a feed that cannot be
reached aborts the cycle before any write. After that, every failure is per
record and only reduces the count of rows written.

A refresh is idempotent by name (re-running overwrites rows, it never
duplicates them) but not in its values: ``estimated_gdp`` uses a random
multiplier, so two runs store different figures for the same country.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS

from . import report, sources, utils
from .exceptions import SourceUnavailable
from .merge import merge_country_data
from .persistence import persist_records
from .serializers import validate_records

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    total: int
    last_refreshed_at: datetime
    skipped_invalid: int = 0
    skipped_failed: int = 0

    def as_response(self) -> dict:
        return {
            "message": "Refresh successful",
            "total": self.total,
            "last_refreshed_at": self.last_refreshed_at.isoformat(),
        }


def _fetch(fetcher, attempts):
    for attempt in range(1, attempts + 1):
        try:
            return fetcher()
        except SourceUnavailable as exc:
            if attempt == attempts:
                raise
            logger.warning("%s unavailable (attempt %d/%d): %s", exc.source, attempt, attempts, exc.detail)


def fetch_sources(attempts: Optional[int] = None):
    """Fetch both feeds concurrently. Raises SourceUnavailable if either fails."""
    attempts = max(1, attempts or settings.COUNTRIES_FETCH_ATTEMPTS)
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="country-fetch") as pool:
        facts_future = pool.submit(_fetch, sources.fetch_country_facts, attempts)
        rates_future = pool.submit(_fetch, sources.fetch_exchange_rates, attempts)
        return facts_future.result(), rates_future.result()


def refresh_countries(
    *,
    using: str = DEFAULT_DB_ALIAS,
    multiplier: Optional[Callable[[], float]] = None,
    max_workers: Optional[int] = None,
    now: Optional[datetime] = None,
) -> RefreshResult:
    now = now or utils.get_now()
    if max_workers is None:
        max_workers = settings.COUNTRIES_UPSERT_WORKERS

    logger.info("Refresh started: fetching sources")
    try:
        facts, snapshot = fetch_sources()
    except SourceUnavailable as exc:
        logger.error("Refresh failed, %s unavailable: %s", exc.source, exc.detail)
        raise

    logger.info("Merging %d countries with %d rates", len(facts), len(snapshot.rates))
    records = merge_country_data(facts, snapshot, refreshed_at=now, multiplier=multiplier)

    valid, invalid = validate_records(records)
    logger.info("Persisting %d records (%d dropped by validation)", len(valid), len(invalid))
    outcome = persist_records(valid, using=using, max_workers=max_workers)

    logger.info("Generating summary report")
    try:
        report.generate_report(now, using=using)
    except Exception:
        # the store is already committed; a stale image is acceptable
        logger.exception("Summary image generation failed")

    result = RefreshResult(
        total=len(outcome.persisted),
        last_refreshed_at=now,
        skipped_invalid=len(facts) - len(records) + len(invalid),
        skipped_failed=len(outcome.failed),
    )
    logger.info(
        "Refresh done: %d persisted, %d invalid, %d failed writes",
        result.total, result.skipped_invalid, result.skipped_failed,
    )
    return result
