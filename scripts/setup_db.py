#!/usr/bin/env python3
"""Initialize the Quill database schema, optionally seeding the demo tenants.

Usage:
    python scripts/setup_db.py
    python scripts/setup_db.py --seed
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import get_settings
from src.core.logging import get_logger, setup_logging
from src.data.db import close_engine, get_engine, init_schema
from src.data.seed import seed_demo_data
from src.saas.passwords import PasswordHasher

log = get_logger(__name__)


async def main(seed: bool) -> None:
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.json_logs)
    log.info("starting_schema_initialization")

    try:
        engine = await get_engine(settings)
        await init_schema(engine)
        if seed:
            await seed_demo_data(
                engine,
                PasswordHasher(rounds=settings.quill_bcrypt_rounds),
                settings.quill_default_note_limit,
            )
        log.info("schema_initialization_complete")
    except Exception as exc:
        log.error("schema_initialization_failed", error=str(exc))
        raise
    finally:
        await close_engine()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--seed", action="store_true", help="create acme/globex demo data")
    args = parser.parse_args()
    asyncio.run(main(args.seed))
