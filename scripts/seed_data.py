"""
Create the database (MySQL), its tables, the default departments and the admin user.

    python scripts/seed_data.py             # departments + admin
    python scripts/seed_data.py --samples   # also HR and demo employees
"""
import argparse
import asyncio
import os
import sys

# Add the project root to sys.path so we can import ezleave when run from a checkout
sys.path.append(os.getcwd())

from ezleave.db import AsyncSessionLocal, ensure_database_exists, init_db, close_db
from ezleave.services.seed import (
    run_seed_departments,
    run_seed_admin,
    run_seed_sample_users,
    ADMIN_EMAIL,
)


async def seed(with_samples: bool) -> None:
    try:
        await ensure_database_exists()
        await init_db()
        print("✅ Database initialized")

        async with AsyncSessionLocal() as db:
            try:
                departments = await run_seed_departments(db)
                print(f"✅ Departments created: {departments}")

                if await run_seed_admin(db):
                    print(f"✅ Admin user {ADMIN_EMAIL} created")
                else:
                    print(f"✅ Admin user {ADMIN_EMAIL} already exists")

                if with_samples:
                    users = await run_seed_sample_users(db)
                    print(f"✅ Sample users created: {users}")

                await db.commit()
            except Exception:
                await db.rollback()
                raise
    finally:
        await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the EZLeave database")
    parser.add_argument("--samples", action="store_true", help="also create HR and demo employee accounts")
    args = parser.parse_args()
    asyncio.run(seed(args.samples))
