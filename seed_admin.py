"""
seed_admin.py
─────────────
Creates the first back-office admin with a bcrypt-hashed password.

    python seed_admin.py

Reads SEED_ADMIN_* and DATABASE_URL from .env. Safe to run twice.
"""
import asyncio
import os
from dotenv import load_dotenv

load_dotenv()

ADMIN_NAME     = os.getenv("SEED_ADMIN_NAME",     "DevPath Admin")
ADMIN_EMAIL    = os.getenv("SEED_ADMIN_EMAIL",    "admin@devpath.app").strip().lower()
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "ChangeMe2025")


async def seed():
    from sqlalchemy import select
    from app.core.credentials import check_password
    from app.core.database import AsyncSessionLocal, create_tables, engine
    from app.core.security import hash_password
    from app.models.admin import Admin

    unmet = check_password(ADMIN_PASSWORD).unmet()
    if unmet:
        print(f"SEED_ADMIN_PASSWORD is too weak, missing: {', '.join(unmet)}")
        return

    await create_tables()

    async with AsyncSessionLocal() as db:
        existing = (await db.execute(
            select(Admin).where(Admin.email == ADMIN_EMAIL)
        )).scalar_one_or_none()

        if existing:
            print(f"Admin already exists: {ADMIN_EMAIL} (no changes made)")
            await engine.dispose()
            return

        admin = Admin(
            name=ADMIN_NAME,
            email=ADMIN_EMAIL,
            password_hash=hash_password(ADMIN_PASSWORD),
        )
        db.add(admin)
        await db.commit()
        await db.refresh(admin)

    await engine.dispose()

    print("\nAdmin created")
    print(f"    ID    : {admin.id}")
    print(f"    Name  : {admin.name}")
    print(f"    Email : {admin.email}")
    print()
    print("Login endpoint : POST /api/admin/auth/login")
    print("Change the password after first login.")


if __name__ == "__main__":
    asyncio.run(seed())
