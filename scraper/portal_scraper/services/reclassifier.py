"""Pokestop <-> gym reclassification.

When the game turns a pokestop into a gym (or back), the ingester creates a
fresh row in the new table while the old row, with its name and image, is
still present. A pass for ``source -> target`` finds ids present in both
tables whose ``target`` row has no name yet, copies the metadata across and
deletes the ``source`` row.

The upgrade pass (pokestop -> gym) always runs before the downgrade pass.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..db import Database
from ..logging import logger
from ..models import PortalTable, ReclassifyResult

# Keeps each expanding IN list well under SQLite's bound-parameter limit
ID_BATCH_SIZE = 500


@dataclass(frozen=True)
class ReclassifyPass:
    source: PortalTable
    target: PortalTable
    label: str


UPGRADE = ReclassifyPass(source="pokestop", target="gym", label="upgrade")
DOWNGRADE = ReclassifyPass(source="gym", target="pokestop", label="downgrade")
PASSES = (UPGRADE, DOWNGRADE)


def _chunks(ids: list[str], size: int) -> list[list[str]]:
    return [ids[i:i + size] for i in range(0, len(ids), size)]


def find_reclassified_ids(db: Database, rc_pass: ReclassifyPass) -> list[str]:
    """Ids present in both tables whose ``target`` row is still unnamed."""
    return db.query_ids(
        f"SELECT s.id FROM {rc_pass.source} s "
        f"INNER JOIN {rc_pass.target} t ON t.id = s.id "
        "WHERE t.name IS NULL"
    )


def copy_metadata(db: Database, rc_pass: ReclassifyPass, ids: list[str]) -> None:
    """Copy ``name``/``url`` from the ``source`` rows onto their ``target`` twins."""
    source, target = rc_pass.source, rc_pass.target
    for batch in _chunks(ids, ID_BATCH_SIZE):
        db.exec_params(
            f"UPDATE {target} SET "
            f"name = (SELECT s.name FROM {source} s WHERE s.id = {target}.id), "
            f"url = (SELECT s.url FROM {source} s WHERE s.id = {target}.id) "
            f"WHERE {target}.id IN :ids",
            {"ids": batch},
            expanding=("ids",),
        )


def delete_duplicates(db: Database, rc_pass: ReclassifyPass, ids: list[str]) -> int:
    """Delete the ``source`` rows of the selected ids once their metadata is copied.

    Only ids chosen by ``find_reclassified_ids`` are touched, so named pairs
    and pending moves in the other direction stay in place.
    """
    deleted = 0
    for batch in _chunks(ids, ID_BATCH_SIZE):
        deleted += db.exec_params(
            f"DELETE FROM {rc_pass.source} WHERE id IN :ids",
            {"ids": batch},
            expanding=("ids",),
        )
    return deleted


def run_pass(db: Database, rc_pass: ReclassifyPass) -> ReclassifyResult:
    """Run one direction; copy and delete commit together or not at all."""
    result = ReclassifyResult(source=rc_pass.source, target=rc_pass.target)

    ids = find_reclassified_ids(db, rc_pass)
    result.selected = len(ids)
    if not ids:
        logger.debug(
            "reclassify_pass_skipped",
            direction=rc_pass.label,
            source=rc_pass.source,
            target=rc_pass.target,
        )
        return result

    with db.transaction():
        copy_metadata(db, rc_pass, ids)
        result.deleted = delete_duplicates(db, rc_pass, ids)

    logger.info(
        "reclassify_pass_completed",
        direction=rc_pass.label,
        source=rc_pass.source,
        target=rc_pass.target,
        selected=result.selected,
        deleted=result.deleted,
    )
    return result


def reclassify(db: Database) -> list[ReclassifyResult]:
    """Run the upgrade pass, then the downgrade pass."""
    return [run_pass(db, rc_pass) for rc_pass in PASSES]
