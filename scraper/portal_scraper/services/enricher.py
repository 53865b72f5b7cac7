"""Backfill missing portal names and image URLs from Intel.

Ids are materialized before the loop starts: the same connection issues the
updates, so no cursor may stay open across them. A failed lookup is logged
and skipped; the next scheduled run retries it. Database errors propagate.
"""

from __future__ import annotations

import time
from typing import Callable, Protocol

from ..db import Database
from ..intel import IntelError
from ..logging import logger
from ..models import PORTAL_TABLES, EnrichmentResult, PortalDetails, PortalTable


class PortalDetailsSource(Protocol):
    def get_portal_details(self, guid: str) -> PortalDetails: ...


def find_missing_ids(db: Database, table: PortalTable) -> list[str]:
    _check_table(table)
    return db.query_ids(f"SELECT id FROM {table} WHERE name IS NULL")


def update_details(db: Database, table: PortalTable, portal_id: str, details: PortalDetails) -> None:
    _check_table(table)
    db.exec_params(
        f"UPDATE {table} SET name = :name, url = :url WHERE id = :id",
        {"id": portal_id, "name": details.name, "url": details.url},
    )


def enrich_table(
    db: Database,
    intel: PortalDetailsSource,
    table: PortalTable,
    request_interval: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> EnrichmentResult:
    """Look up every unnamed row of ``table`` and store what Intel returns.

    Args:
        db: Database gateway
        intel: Anything with ``get_portal_details``
        table: "pokestop" or "gym"
        request_interval: Seconds to wait between Intel calls (0 disables)
        sleep: Injected for tests

    Returns:
        Counts of missing, updated and failed rows
    """
    missing = find_missing_ids(db, table)
    result = EnrichmentResult(table=table, missing=len(missing))
    logger.info("enrich_started", table=table, missing=len(missing))

    for index, portal_id in enumerate(missing):
        if index and request_interval > 0:
            sleep(request_interval)

        try:
            details = intel.get_portal_details(portal_id)
        except IntelError as exc:
            result.failed += 1
            logger.error(
                "portal_details_failed",
                table=table,
                portal_id=portal_id,
                error=str(exc),
            )
            continue

        update_details(db, table, portal_id, details)
        result.updated += 1
        logger.debug("portal_enriched", table=table, portal_id=portal_id, name=details.name)

    logger.info(
        "enrich_completed",
        table=table,
        missing=result.missing,
        updated=result.updated,
        failed=result.failed,
    )
    return result


def enrich_all(
    db: Database,
    intel: PortalDetailsSource,
    request_interval: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> list[EnrichmentResult]:
    """Pokestops first, then gyms."""
    return [
        enrich_table(db, intel, table, request_interval=request_interval, sleep=sleep)
        for table in PORTAL_TABLES
    ]


def _check_table(table: str) -> None:
    if table not in PORTAL_TABLES:
        raise ValueError(f"Unknown portal table: {table}")
