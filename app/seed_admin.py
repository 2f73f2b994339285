import asyncio
import os

from sqlalchemy.future import select
from app.core.db import SessionLocal
from app.core.security import create_access_token
from app.modules.auth.models import User, UserRole, AuthMode

ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@civictrack.local")

async def seed_admin():
    async with SessionLocal() as session:
        # Check if admin exists
        result = await session.execute(select(User).where(User.email == ADMIN_EMAIL))
        admin_user = result.scalars().first()

        if admin_user:
            print("Admin user already exists.")
        else:
            print("Creating admin user...")
            admin_user = User(
                email=ADMIN_EMAIL,
                full_name="System Admin",
                role=UserRole.ADMIN,
                auth_mode=AuthMode.PASSWORD,
                is_active=True,
            )
            session.add(admin_user)
            await session.commit()
            print("Admin created successfully!")

        # Credentials live with the identity provider; this token is for local use only
        token = create_access_token(subject=admin_user.id, role=admin_user.role.value)
        print(f"Email: {admin_user.email}")
        print(f"Bearer token: {token}")

if __name__ == "__main__":
    asyncio.run(seed_admin())
