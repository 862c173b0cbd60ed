"""Initialize database tables."""
import asyncio

from schemehub.database import engine, Base

# Import all models to register them with Base
import schemehub.models  # noqa: F401


async def init():
    """Create all tables."""
    print("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init())
