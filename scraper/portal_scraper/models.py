"""Pydantic models and result records shared by the job's steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

PortalTable = Literal["pokestop", "gym"]
PORTAL_TABLES: tuple[PortalTable, ...] = ("pokestop", "gym")


class PortalDetails(BaseModel):
    guid: str
    name: str
    url: str


@dataclass
class ReclassifyResult:
    source: PortalTable
    target: PortalTable
    selected: int = 0
    deleted: int = 0

    @property
    def skipped(self) -> bool:
        return self.selected == 0


@dataclass
class EnrichmentResult:
    table: PortalTable
    missing: int = 0
    updated: int = 0
    failed: int = 0
