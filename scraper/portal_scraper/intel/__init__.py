"""Ingress Intel portal-details client."""

from .client import IntelClient
from .errors import IntelAuthError, IntelError

__all__ = ["IntelAuthError", "IntelClient", "IntelError"]
