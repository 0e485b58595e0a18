"""System-wide constants. All magic numbers and strings live here."""

from __future__ import annotations

# ── Notes ────────────────────────────────────────────────────────
NOTE_TITLE_MAX_LENGTH = 200
NOTE_CONTENT_MAX_LENGTH = 10_000

# ── Plans ────────────────────────────────────────────────────────
UNLIMITED_NOTES = -1                # stored note_limit sentinel for pro
DEFAULT_FREE_NOTE_LIMIT = 3

# ── Auth ─────────────────────────────────────────────────────────
PASSWORD_MIN_LENGTH = 6
BCRYPT_MAX_PASSWORD_BYTES = 72
DEFAULT_BCRYPT_ROUNDS = 10
DEFAULT_TOKEN_TTL_HOURS = 24
JWT_ALGORITHM = "HS256"

# ── Tenants ──────────────────────────────────────────────────────
COMPANY_NAME_MIN_LENGTH = 2
COMPANY_NAME_MAX_LENGTH = 100
SLUG_MAX_LENGTH = 64

# ── Demo Seed ────────────────────────────────────────────────────
DEMO_PASSWORD = "password"
DEMO_TENANTS: tuple[tuple[str, str], ...] = (
    ("acme", "Acme Corporation"),
    ("globex", "Globex Corporation"),
)
