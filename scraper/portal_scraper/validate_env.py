"""Fail-fast environment validation for the portal scraper.

Only presence is checked here. Whether the Intel or RDM features run is
decided later from the optional variables on ``Settings``.
"""

from __future__ import annotations

import os


def require_env(name: str) -> str:
    """Fetch an environment variable or raise RuntimeError if missing."""
    value = os.getenv(name)
    if value is None or not value.strip():
        raise RuntimeError(f"{name} is required and must be set before startup.")
    return value.strip()


def validate_env() -> None:
    """Validate required environment variables before the job touches any I/O.

    DATABASE_URL is the only hard requirement. ENVIRONMENT is a free-form
    label for log lines and is not checked.
    """
    require_env("DATABASE_URL")
