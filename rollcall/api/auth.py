"""Shared-secret authorization for routes that mutate attendance state."""

from __future__ import annotations

import hmac
import typing as typ

from rollcall.api.errors import UnauthorizedError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request

__all__ = ["IMPORT_SECRET_HEADER", "ImportSecretGuard"]

IMPORT_SECRET_HEADER = "X-Import-Secret"
IMPORT_SECRET_PARAM = "secret"


class ImportSecretGuard:
    """Check the import secret carried by a request.

    The secret may arrive in the ``X-Import-Secret`` header or the ``secret``
    query parameter. When no secret is configured every check fails.
    """

    def __init__(self, secret: str | None) -> None:
        """Store the expected secret; blank values disable all access."""
        self._secret = (secret or "").strip() or None

    @property
    def configured(self) -> bool:
        """Return whether a secret is configured."""
        return self._secret is not None

    def is_authorized(self, supplied: str | None) -> bool:
        """Compare ``supplied`` against the secret in constant time."""
        if self._secret is None or not supplied:
            return False
        return hmac.compare_digest(
            supplied.encode("utf-8"), self._secret.encode("utf-8")
        )

    def require(self, req: Request) -> None:
        """Raise :class:`UnauthorizedError` unless ``req`` carries the secret."""
        if self._secret is None:
            raise UnauthorizedError("import secret is not configured")
        supplied = req.get_header(IMPORT_SECRET_HEADER) or req.get_param(
            IMPORT_SECRET_PARAM
        )
        if not self.is_authorized(supplied):
            raise UnauthorizedError
