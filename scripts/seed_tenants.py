#!/usr/bin/env python3
"""Seed the database with the master tenant and a demo tenant.

Usage:
    python scripts/seed_tenants.py
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from tenant_gate.common.config import get_settings
from tenant_gate.common.database import DatabaseManager
from tenant_gate.tenants.service import TenantService

TENANT_SEEDS = [
    {"name": "Master", "slug": "master", "domain": None, "features": []},
    {
        "name": "Acme Timebank",
        "slug": "acme",
        "domain": "acme.example.com",
        "features": ["listings", "messages", "groups"],
        "settings": {"currency": "hours", "max_listings": "50"},
    },
]


async def seed_tenants() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    svc = TenantService()

    async with db.get_session() as session:
        for seed in TENANT_SEEDS:
            existing = await svc.get_by_slug(session, seed["slug"], active_only=False)
            if existing:
                print(f"  [skip] {seed['slug']} already exists (id={existing.id})")
                continue

            tenant = await svc.create_tenant(
                session,
                name=seed["name"],
                slug=seed["slug"],
                domain=seed["domain"],
                features=seed["features"],
            )
            for key, value in seed.get("settings", {}).items():
                await svc.set_setting(session, tenant.id, key, value)
            print(f"  [created] {seed['slug']} (id={tenant.id})")

    await db.close()
    print(f"\nDone. {len(TENANT_SEEDS)} tenants seeded.")


if __name__ == "__main__":
    asyncio.run(seed_tenants())
