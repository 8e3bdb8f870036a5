# apps/api/seed.py
# Create one account per role:  python -m apps.api.seed
import os

import dotenv
from loguru import logger

from auth.auth_manager import AuthManager
from auth.permissions import Role
from legal.repository import UserRepository
from storage.database import DatabaseManager

dotenv.load_dotenv()

SEED_USERS = [
    ("superadmin", "superadmin@example.com", "مدير النظام", "System Administrator", Role.SUPER_ADMIN),
    ("admin", "admin@example.com", "مسؤول", "Administrator", Role.ADMIN),
    ("lawyer", "lawyer@example.com", "محامي", "Lawyer", Role.LAWYER),
    ("staff", "staff@example.com", "موظف", "Staff Member", Role.STAFF),
]


def seed_users(db_manager: DatabaseManager, auth_manager: AuthManager, password: str) -> list:
    """Insert the seed accounts that don't exist yet; returns the emails created."""
    created = []
    with db_manager.session() as db:
        for username, email, name_ar, name_en, role in SEED_USERS:
            if UserRepository.find_by_email(db, email):
                logger.info(f"Seed user {email} already exists")
                continue
            UserRepository.create(
                db,
                username=username,
                email=email,
                password_hash=auth_manager.hash_password(password),
                full_name_ar=name_ar,
                full_name_en=name_en,
                role=role.value,
                is_active=True,
            )
            created.append(email)
    return created


if __name__ == "__main__":
    db_manager = DatabaseManager()
    db_manager.create_tables()
    auth_manager = AuthManager(db_manager)

    created = seed_users(db_manager, auth_manager, os.getenv("SEED_PASSWORD", "ChangeMe123!"))
    logger.info(f"Seeded {len(created)} user(s): {created}")
