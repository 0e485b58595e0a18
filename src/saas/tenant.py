"""Tenant plans and slugs.

Each tenant has:
- A globally unique, immutable URL-safe slug derived from its display name
- A plan (free or pro) that fixes its note limit
- A one-way upgrade path from free to pro
"""

from __future__ import annotations

import re
import unicodedata

from src.core.constants import (
    DEFAULT_FREE_NOTE_LIMIT,
    SLUG_MAX_LENGTH,
    UNLIMITED_NOTES,
)
from src.core.exceptions import AlreadyOnPlanError, InputValidationError
from src.core.types import TenantPlan

PLAN_LIMITS: dict[TenantPlan, dict[str, int]] = {
    TenantPlan.FREE: {
        "max_notes": DEFAULT_FREE_NOTE_LIMIT,
    },
    TenantPlan.PRO: {
        "max_notes": UNLIMITED_NOTES,
    },
}

# Allowed transitions: current plan -> plans it may move to.
PLAN_TRANSITIONS: dict[TenantPlan, frozenset[TenantPlan]] = {
    TenantPlan.FREE: frozenset({TenantPlan.PRO}),
    TenantPlan.PRO: frozenset(),
}

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Derive a lowercase, hyphen-separated slug from a display name.

    >>> slugify("Acme Corp")
    'acme-corp'
    """
    ascii_name = (
        unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    )
    slug = _NON_SLUG_CHARS.sub("-", ascii_name.lower()).strip("-")
    slug = slug[:SLUG_MAX_LENGTH].rstrip("-")
    if not slug:
        raise InputValidationError(
            "company name must contain at least one letter or digit",
            context={"name": name},
        )
    return slug


def note_limit_for(plan: TenantPlan) -> int:
    return PLAN_LIMITS[plan]["max_notes"]


def check_transition(current: TenantPlan, target: TenantPlan) -> None:
    """Raise if ``current -> target`` is not an allowed plan change."""
    if current == target:
        raise AlreadyOnPlanError(
            f"Tenant is already on {target.value.capitalize()} plan",
            context={"plan": target.value},
        )
    if target not in PLAN_TRANSITIONS[current]:
        raise InputValidationError(
            f"Cannot move from {current.value} to {target.value} plan",
            context={"from": current.value, "to": target.value},
        )
