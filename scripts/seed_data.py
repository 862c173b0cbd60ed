"""
Seed initial data for local development.

Creates one user per role (password: password123) and loads sample
products and distributors through the master data reconciler, the same
path the scheduled sync uses.

Usage:
    python scripts/seed_data.py        # seed
    python scripts/seed_data.py -d     # delete seeded data
"""
import asyncio
import sys

from sqlalchemy import delete, select

from schemehub.database import async_session_factory, engine, init_db
from schemehub.core.security import get_password_hash
from schemehub.models import User, UserRole, Product, Distributor, Scheme, SchemeHistory, FilterPreset
from schemehub.services.data_sync_service import DataSyncService
from schemehub.services.external_source import StaticSource


SEED_PASSWORD = "password123"

USERS = [
    {"name": "Admin User", "email": "admin@example.com", "username": "admin", "role": UserRole.ADMIN},
    {"name": "Creator User", "email": "creator@example.com", "username": "creator", "role": UserRole.CREATOR},
    {"name": "Verifier User", "email": "verifier@example.com", "username": "verifier", "role": UserRole.VERIFIER},
    {"name": "Viewer User", "email": "viewer@example.com", "username": "viewer", "role": UserRole.VIEWER},
]

PRODUCT_ROWS = [
    {"ITEMID": "P001", "ITEMNAME": "Product A", "BRANDNAME": "Brand X", "FLAVOURTYPE": "Original",
     "PACKTYPEGROUPNAME": "Small", "Style": "Standard", "PACKTYPE": "Box", "Configuration": "120", "NOB": 12},
    {"ITEMID": "P002", "ITEMNAME": "Product B", "BRANDNAME": "Brand Y", "FLAVOURTYPE": "Mint",
     "PACKTYPEGROUPNAME": "Medium", "Style": "Premium", "PACKTYPE": "Bottle", "Configuration": "180", "NOB": 6},
    {"ITEMID": "P003", "ITEMNAME": "Product C", "BRANDNAME": "Brand X", "FLAVOURTYPE": "Strawberry",
     "PACKTYPEGROUPNAME": "Large", "Style": "Economy", "PACKTYPE": "Pouch", "Configuration": "240", "NOB": 24},
]

DISTRIBUTOR_ROWS = [
    {"CUSTOMERACCOUNT": "ABC001", "ORGANIZATIONNAME": "ABC Distributors", "ADDRESSCITY": "Mumbai",
     "SMCODE": "WEST-01", "CUSTOMERGROUPID": "PREMIUM"},
    {"CUSTOMERACCOUNT": "XYZ002", "ORGANIZATIONNAME": "XYZ Enterprises", "ADDRESSCITY": "Delhi",
     "SMCODE": "NORTH-01", "CUSTOMERGROUPID": "STANDARD"},
    {"CUSTOMERACCOUNT": "PQR003", "ORGANIZATIONNAME": "PQR Trading", "ADDRESSCITY": "Bangalore",
     "SMCODE": "SOUTH-01", "CUSTOMERGROUPID": "PREMIUM"},
]


def sample_source() -> StaticSource:
    return StaticSource({"Ratan_Item": PRODUCT_ROWS, "Ratan_Customer": DISTRIBUTOR_ROWS})


async def seed():
    """Seed initial data."""
    await init_db()
    async with async_session_factory() as db:
        print("Seeding data...")

        print("Creating users...")
        for data in USERS:
            existing = await db.execute(select(User).where(User.email == data["email"]))
            if existing.scalar_one_or_none():
                print(f"  {data['email']} already exists, skipping")
                continue
            db.add(User(
                name=data["name"],
                email=data["email"],
                username=data["username"],
                role=data["role"].value,
                password_hash=get_password_hash(SEED_PASSWORD),
            ))
        await db.commit()

        print("Loading master data...")
        results = await DataSyncService(db, source=sample_source()).sync_all()
        for result in results:
            print(f"  {result.entity}: created={result.created} updated={result.updated} skipped={result.skipped}")

        print(f"Done. Log in with any of the seeded emails and password '{SEED_PASSWORD}'.")
    await engine.dispose()


async def destroy():
    """Delete all data."""
    async with async_session_factory() as db:
        for model in (SchemeHistory, Scheme, FilterPreset, Product, Distributor, User):
            await db.execute(delete(model))
        await db.commit()
    await engine.dispose()
    print("Data destroyed")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "-d":
        asyncio.run(destroy())
    else:
        asyncio.run(seed())
