"""Custom exception hierarchy for Quill."""

from __future__ import annotations

from typing import Any


class QuillError(Exception):
    """Base exception for all Quill errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}


# ── Request Layer ────────────────────────────────────────────────

class InputValidationError(QuillError):
    """Malformed or out-of-range input."""


class UnauthenticatedError(QuillError):
    """Missing, invalid or expired credential."""


class ForbiddenError(QuillError):
    """Caller lacks the role, or referenced a tenant other than its own."""


class NotFoundError(QuillError):
    """Resource absent from the caller's tenant scope."""


class ConflictError(QuillError):
    """Duplicate slug or email, or a repeated state transition."""


# ── Plans & Quotas ───────────────────────────────────────────────

class AlreadyOnPlanError(ConflictError):
    """Tenant is already on the requested plan."""


class QuotaExceededError(QuillError):
    """Tenant has reached the note limit of its plan."""

    hint = "Upgrade to Pro plan to create unlimited notes"


# ── Session Tokens ───────────────────────────────────────────────

class TokenVerificationError(QuillError):
    """Base class for session token failures."""


class MalformedTokenError(TokenVerificationError):
    """Token cannot be parsed or lacks required claims."""


class SignatureInvalidError(TokenVerificationError):
    """Token signature does not match the signing secret."""


class TokenExpiredError(TokenVerificationError):
    """Token is past its expiry."""
