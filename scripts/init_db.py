"""Script to initialize the database without alembic (local development)."""

import asyncio

from sqlalchemy import select

from app.config import settings
from app.database import engine
from app.models import cities, metadata


async def init_db() -> None:
    """Create all tables and seed the default city."""
    async with engine.begin() as conn:
        if engine.dialect.name == "postgresql":
            await conn.exec_driver_sql('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

        await conn.run_sync(metadata.create_all)

        existing = await conn.execute(select(cities.c.id).where(cities.c.slug == settings.default_city_slug))
        if existing.first() is None:
            await conn.execute(
                cities.insert().values(
                    slug="austin",
                    name="Austin",
                    display_name="Austin Food Club",
                    state="TX",
                    timezone="America/Chicago",
                    latitude=30.2672,
                    longitude=-97.7431,
                    is_active=True,
                )
            )
            print("✓ Seeded Austin")

        print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
