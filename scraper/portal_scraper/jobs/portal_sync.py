"""The portal maintenance job.

Runs once and exits:

    settings -> DB open -> reclassify (upgrade, downgrade)
             -> enrich (pokestop, gym) -> DB close -> RDM flush

Returns a process exit code: 0 when every step completed (per-portal Intel
failures included), 1 on any fatal error.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

import httpx
from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import Settings, load_settings
from ..db import open_database
from ..intel import IntelClient
from ..logging import configure_logging, logger
from ..models import EnrichmentResult, ReclassifyResult
from ..rdm import RdmError, flush_rdm_cache
from ..services.enricher import PortalDetailsSource, enrich_all
from ..services.reclassifier import reclassify

EXIT_OK = 0
EXIT_FAILURE = 1


@dataclass
class SyncSummary:
    reclassified: list[ReclassifyResult] = field(default_factory=list)
    enriched: list[EnrichmentResult] = field(default_factory=list)
    rdm_flushed: bool = False


def build_intel_client(settings: Settings, transport: httpx.BaseTransport | None = None) -> IntelClient:
    return IntelClient(
        settings.username,
        settings.password,
        settings.cookies,
        timeout=settings.intel_timeout_seconds,
        transport=transport,
    )


def run_portal_sync(
    settings: Settings,
    *,
    engine: Engine | None = None,
    intel: PortalDetailsSource | None = None,
    rdm_transport: httpx.BaseTransport | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SyncSummary:
    """Run every step in order. Fatal errors propagate to the caller.

    ``engine``, ``intel`` and ``rdm_transport`` replace the real collaborators
    in tests.
    """
    summary = SyncSummary()

    owned_intel: IntelClient | None = None
    if intel is None and settings.intel_enabled:
        owned_intel = build_intel_client(settings)
        intel = owned_intel

    try:
        with open_database(settings.database_url, engine=engine) as db:
            summary.reclassified = reclassify(db)

            if intel is None:
                logger.warning(
                    "enrich_disabled",
                    reason="Set COOKIES or USERNAME and PASSWORD to enable Intel lookups.",
                )
            else:
                summary.enriched = enrich_all(
                    db,
                    intel,
                    request_interval=settings.request_interval,
                    sleep=sleep,
                )
    finally:
        if owned_intel is not None:
            owned_intel.close()

    if settings.rdm_enabled:
        flush_rdm_cache(
            settings.rdm_url,
            settings.rdm_username,
            settings.rdm_password,
            timeout=settings.rdm_timeout_seconds,
            transport=rdm_transport,
        )
        summary.rdm_flushed = True
    elif settings.rdm_url:
        logger.warning("rdm_flush_disabled", reason="missing RDM_USERNAME or RDM_PASSWORD")
    else:
        logger.debug("rdm_flush_disabled")

    return summary


def main() -> int:
    """Console entry point; no arguments."""
    try:
        settings = load_settings()
    except (RuntimeError, ValidationError) as exc:
        configure_logging()
        logger.error("config_invalid", error=str(exc))
        return EXIT_FAILURE

    configure_logging(settings.log_level, settings.environment)
    logger.info(
        "portal_sync_started",
        intel_enabled=settings.intel_enabled,
        rdm_enabled=settings.rdm_enabled,
        request_interval=settings.request_interval,
    )

    try:
        summary = run_portal_sync(settings)
    except SQLAlchemyError:
        logger.exception("portal_sync_db_error")
        return EXIT_FAILURE
    except RdmError:
        # Already logged with the failing step by flush_rdm_cache
        return EXIT_FAILURE

    logger.info(
        "portal_sync_completed",
        reclassified=sum(r.selected for r in summary.reclassified),
        enriched=sum(r.updated for r in summary.enriched),
        enrich_failures=sum(r.failed for r in summary.enriched),
        rdm_flushed=summary.rdm_flushed,
    )
    return EXIT_OK
