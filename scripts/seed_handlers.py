#!/usr/bin/env python3
"""
Seed Handlers
=============

Provisions moderator and admin records from a YAML file. At least one admin
must exist for the triage fallback assignment to find anyone.

Usage:
    python scripts/seed_handlers.py handlers.example.yaml
"""

import asyncio
import sys
from pathlib import Path
from typing import List
from uuid import uuid4

import yaml

from helpdesk.config import HandlerRole, settings
from helpdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
)
from helpdesk.shared.infrastructure.logging import get_logger, setup_logging
from helpdesk.triage.application import IHandlerStore
from helpdesk.triage.domain import Handler
from helpdesk.triage.infrastructure import SQLAlchemyHandlerStore

logger = get_logger(__name__)


def load_handlers(path: Path) -> List[Handler]:
    """Parse the YAML handler list."""
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    handlers = []
    for entry in data.get("handlers", []):
        handlers.append(Handler(
            id=str(entry.get("id") or uuid4()),
            email=entry["email"],
            role=HandlerRole(entry["role"]),
            skills=frozenset(s.strip() for s in entry.get("skills", []) if s and s.strip()),
        ))

    if not any(h.role == HandlerRole.ADMIN for h in handlers):
        logger.warning("No admin in handler file, fallback assignment will find nobody")
    return handlers


async def seed_handlers(store: IHandlerStore, handlers: List[Handler]) -> int:
    """Insert handlers whose email is not stored yet. Returns the number inserted."""
    added = 0
    for handler in handlers:
        if await store.find_by_email(handler.email) is not None:
            logger.info("Handler already exists, skipping", extra={"email": handler.email})
            continue
        await store.add(handler)
        added += 1
        logger.info("Seeded handler", extra={"email": handler.email, "role": handler.role.value})
    return added


async def seed(path: Path) -> int:
    engine = init_database(settings.database_url)
    try:
        await create_tables(engine)
        store = SQLAlchemyHandlerStore(get_session_maker())
        return await seed_handlers(store, load_handlers(path))
    finally:
        await close_database()


if __name__ == "__main__":
    setup_logging(settings.log_level, settings.environment)
    source = Path(sys.argv[1] if len(sys.argv) > 1 else "handlers.example.yaml")
    count = asyncio.run(seed(source))
    print(f"Seeded {count} new handlers from {source}")
