"""SaaS multi-tenant layer — credentials, session tokens, plans and note quotas."""

from src.saas.passwords import PasswordHasher
from src.saas.quota import QuotaEnforcer
from src.saas.tenant import PLAN_LIMITS, check_transition, note_limit_for, slugify
from src.saas.tokens import SessionTokenCodec

__all__ = [
    "PasswordHasher",
    "QuotaEnforcer",
    "PLAN_LIMITS",
    "check_transition",
    "note_limit_for",
    "slugify",
    "SessionTokenCodec",
]
