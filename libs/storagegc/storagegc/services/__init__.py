"""Run-scoped services (auth gate, context)."""

from storagegc.services.auth import AuthorizationGate
from storagegc.services.context import GCContext

__all__ = ["AuthorizationGate", "GCContext"]
