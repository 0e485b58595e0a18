"""Credential verifier — salted bcrypt hashes with a tunable cost factor."""

from __future__ import annotations

import bcrypt

from src.core.constants import BCRYPT_MAX_PASSWORD_BYTES, DEFAULT_BCRYPT_ROUNDS
from src.core.exceptions import InputValidationError
from src.core.logging import get_logger

log = get_logger(__name__)


class PasswordHasher:
    """Hash and verify passwords. Neither the plaintext nor the hash is ever logged."""

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self._rounds = rounds
        # Compared against when no account matches, so a miss costs the same as a hit.
        self._dummy_hash: bytes | None = None

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        encoded = plaintext.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
            raise InputValidationError(
                f"password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes"
            )
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plaintext: str, stored_hash: str) -> bool:
        """Return True if ``plaintext`` matches ``stored_hash``. Never raises."""
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), stored_hash.encode("utf-8"))
        except Exception:  # noqa: BLE001
            log.warning("password_verify_error")
            return False

    def burn(self, plaintext: str) -> None:
        """Spend one verification's worth of work against a throwaway hash."""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"quill-dummy", bcrypt.gensalt(rounds=self._rounds))
        self.verify(plaintext, self._dummy_hash.decode("utf-8"))
