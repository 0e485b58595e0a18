"""Session token codec — HS256 JWTs carrying tenant-scoped identity claims.

Tokens are self-contained: any process holding the signing secret can verify
a request without a session store. The trade-off is that a token stays valid
until it expires; there is no revocation list.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from src.core.constants import DEFAULT_TOKEN_TTL_HOURS, JWT_ALGORITHM
from src.core.exceptions import (
    MalformedTokenError,
    SignatureInvalidError,
    TokenExpiredError,
)
from src.core.logging import get_logger
from src.core.types import Role, SessionClaims

log = get_logger(__name__)

_REQUIRED_CLAIMS = ("sub", "tenant_id", "tenant_slug", "email", "role", "exp")


class SessionTokenCodec:
    """Issue and verify signed session tokens.

    The secret is passed in at construction and fixed for the lifetime of the
    codec. ``clock`` returns the current Unix time and exists for tests.
    """

    def __init__(
        self,
        secret: str,
        default_ttl: timedelta = timedelta(hours=DEFAULT_TOKEN_TTL_HOURS),
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            msg = "token signing secret must not be empty"
            raise ValueError(msg)
        self._secret: bytes = secret.encode()
        self._default_ttl = default_ttl
        self._clock = clock

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    def issue(
        self,
        *,
        user_id: str,
        tenant_id: str,
        tenant_slug: str,
        email: str,
        role: Role,
        ttl: timedelta | None = None,
    ) -> str:
        """Create a signed token whose expiry is ``now + ttl``."""
        now = int(self._clock())
        lifetime = int((ttl if ttl is not None else self._default_ttl).total_seconds())
        payload = {
            "sub": user_id,
            "tenant_id": tenant_id,
            "tenant_slug": tenant_slug,
            "email": email,
            "role": Role(role).value,
            "iat": now,
            "exp": now + lifetime,
        }

        header = self._b64url_encode(
            json.dumps({"alg": JWT_ALGORITHM, "typ": "JWT"}, separators=(",", ":")).encode()
        )
        body = self._b64url_encode(json.dumps(payload, separators=(",", ":")).encode())
        signature = self._sign(f"{header}.{body}")
        return f"{header}.{body}.{signature}"

    def verify(self, token: str) -> SessionClaims:
        """Return the claims of a valid token.

        Raises:
            MalformedTokenError: the token cannot be parsed.
            SignatureInvalidError: the signature does not match.
            TokenExpiredError: the current time is past ``exp``.
        """
        if not token or not token.isascii():
            raise MalformedTokenError("token must be non-empty ASCII")
        parts = token.split(".")
        if len(parts) != 3 or not all(parts):
            raise MalformedTokenError("token must have three segments")

        header_b64, body_b64, sig = parts
        try:
            header = json.loads(self._b64url_decode(header_b64))
        except (binascii.Error, ValueError) as exc:
            raise MalformedTokenError("token header is not valid JSON") from exc
        if not isinstance(header, dict) or header.get("alg") != JWT_ALGORITHM:
            raise MalformedTokenError("unsupported token algorithm")

        expected_sig = self._sign(f"{header_b64}.{body_b64}")
        if not hmac.compare_digest(sig.encode("ascii"), expected_sig.encode("ascii")):
            log.warning("jwt_invalid_signature")
            raise SignatureInvalidError("token signature mismatch")

        try:
            payload = json.loads(self._b64url_decode(body_b64))
        except (binascii.Error, ValueError) as exc:
            log.warning("jwt_decode_error")
            raise MalformedTokenError("token payload is not valid JSON") from exc

        claims = self._claims_from_payload(payload)

        if self._clock() > payload["exp"]:
            log.debug("jwt_expired", sub=claims.user_id)
            raise TokenExpiredError("token has expired")

        return claims

    @staticmethod
    def _claims_from_payload(payload: Any) -> SessionClaims:
        if not isinstance(payload, dict):
            raise MalformedTokenError("token payload must be an object")
        missing = [k for k in _REQUIRED_CLAIMS if k not in payload]
        if missing:
            raise MalformedTokenError(
                "token is missing claims", context={"missing": missing}
            )
        exp = payload["exp"]
        if not isinstance(exp, int) or isinstance(exp, bool):
            raise MalformedTokenError("token expiry must be an integer")
        try:
            role = Role(payload["role"])
        except ValueError as exc:
            raise MalformedTokenError("token carries an unknown role") from exc

        return SessionClaims(
            user_id=str(payload["sub"]),
            tenant_id=str(payload["tenant_id"]),
            tenant_slug=str(payload["tenant_slug"]),
            email=str(payload["email"]),
            role=role,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )

    def _sign(self, message: str) -> str:
        sig_bytes = hmac.new(self._secret, message.encode(), hashlib.sha256).digest()
        return self._b64url_encode(sig_bytes)

    @staticmethod
    def _b64url_encode(data: bytes) -> str:
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode()

    @staticmethod
    def _b64url_decode(s: str) -> bytes:
        padding = 4 - len(s) % 4
        if padding != 4:
            s += "=" * padding
        return base64.urlsafe_b64decode(s.encode("ascii"))
