"""Shared-secret gate for mutating storage operations."""

from __future__ import annotations

import hmac

from storagegc.exceptions import UnauthorizedError


class AuthorizationGate:
    """Compares a caller-supplied token against the configured secret.

    An unset secret disables the check entirely. That is an operational choice
    of the deployment, not a default-deny.
    """

    def __init__(self, secret: str | None) -> None:
        self._secret = str(secret or "") or None

    @property
    def required(self) -> bool:
        return self._secret is not None

    def allows(self, token: str | None) -> bool:
        if self._secret is None:
            return True
        if not token:
            return False
        return hmac.compare_digest(str(token).encode("utf-8"), self._secret.encode("utf-8"))

    def check(self, token: str | None) -> None:
        if not self.allows(token):
            raise UnauthorizedError("Unauthorized: Invalid upload secret")
