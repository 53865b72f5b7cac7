"""Pokestop/gym reconciliation and Intel metadata backfill."""

__version__ = "0.1.0"
