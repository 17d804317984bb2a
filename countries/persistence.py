"""
Store access for the ``countries`` table.

Every function takes the database alias it should use (``using``) instead of
reaching for a global connection, so callers decide which store they talk to.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from django.db import DEFAULT_DB_ALIAS, DatabaseError, connections
from django.db.models import Count, F, Max

from .exceptions import InvalidQuery, PersistenceFailed
from .merge import MergedCountryRecord
from .models import Country

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "gdp": "estimated_gdp",
    "name": "name",
    "capital": "capital",
    "region": "region",
    "population": "population",
    "currency_code": "currency_code",
    "exchange_rate": "exchange_rate",
    "estimated_gdp": "estimated_gdp",
}


@dataclass
class PersistOutcome:
    persisted: List[Country] = field(default_factory=list)
    failed: List[PersistenceFailed] = field(default_factory=list)


def upsert_country(record: MergedCountryRecord, using: str = DEFAULT_DB_ALIAS) -> Country:
    """
    Insert the record, or overwrite every non-key column of the row whose
    name matches case-insensitively. The stored name and id are kept.
    The unique constraints on the table settle concurrent inserts.
    """
    values = record.field_values()
    try:
        country, created = Country.objects.using(using).update_or_create(
            name__iexact=record.name,
            defaults=values,
            create_defaults={"name": record.name, **values},
        )
    except (DatabaseError, OverflowError, ValueError, TypeError) as exc:
        raise PersistenceFailed(record.name, exc) from exc
    logger.debug("%s %s", "Inserted" if created else "Updated", country.name)
    return country


def _upsert_in_worker(record, using):
    try:
        return upsert_country(record, using)
    finally:
        # worker threads own their connection
        connections[using].close()


def persist_records(
    records: Sequence[MergedCountryRecord],
    using: str = DEFAULT_DB_ALIAS,
    max_workers: int = 1,
) -> PersistOutcome:
    """
    Upsert each record independently. A failed write is logged and counted,
    never raised. With more than one worker the writes run concurrently and
    complete in no particular order.
    """
    outcome = PersistOutcome()

    def collect(record, call):
        try:
            outcome.persisted.append(call())
        except PersistenceFailed as exc:
            logger.warning("Skipping %r: %s", record.name, exc.cause)
            outcome.failed.append(exc)

    if max_workers <= 1 or len(records) <= 1:
        for record in records:
            collect(record, lambda record=record: upsert_country(record, using))
        return outcome

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="country-upsert") as pool:
        futures = {pool.submit(_upsert_in_worker, record, using): record for record in records}
        for future in as_completed(futures):
            collect(futures[future], future.result)
    return outcome


def list_countries(region=None, currency=None, sort=None, using: str = DEFAULT_DB_ALIAS):
    qs = Country.objects.using(using).all()

    if region:
        qs = qs.filter(region=region.strip().title())
    if currency:
        qs = qs.filter(currency_code=currency.strip().upper())

    if not sort:
        return qs.order_by("id")

    key, _, direction = sort.rpartition("_")
    if direction not in {"asc", "desc"} or key not in SORTABLE_FIELDS:
        raise InvalidQuery({"sort": "invalid format (use gdp_desc, <field>_asc or <field>_desc)"})

    column = F(SORTABLE_FIELDS[key])
    ordering = column.desc(nulls_last=True) if direction == "desc" else column.asc(nulls_last=True)
    return qs.order_by(ordering, "id")


def get_country(name: str, using: str = DEFAULT_DB_ALIAS) -> Optional[Country]:
    return Country.objects.using(using).filter(name__iexact=name).first()


def delete_country(name: str, using: str = DEFAULT_DB_ALIAS) -> Optional[Country]:
    """Delete the row named ``name`` and return it as it was, or None."""
    country = get_country(name, using)
    if country is None:
        return None
    deleted_id = country.pk
    country.delete(using=using)
    # delete() clears the pk on the instance
    country.pk = deleted_id
    logger.info("Deleted %s", country.name)
    return country


def refresh_status(using: str = DEFAULT_DB_ALIAS) -> dict:
    stats = Country.objects.using(using).aggregate(
        total=Count("id"),
        last_refreshed_at=Max("last_refreshed_at"),
    )
    return {
        "totalCountries": stats["total"],
        "lastRefreshedAt": stats["last_refreshed_at"],
    }
