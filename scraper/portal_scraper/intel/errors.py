"""Intel client exceptions."""

from __future__ import annotations


class IntelError(Exception):
    """A portal lookup failed. Callers skip the portal and move on."""


class IntelAuthError(IntelError):
    """No usable Intel session could be established."""
