"""RDM console cache flush."""

from .client import RdmClient, RdmError, RdmState, flush_rdm_cache

__all__ = ["RdmClient", "RdmError", "RdmState", "flush_rdm_cache"]
