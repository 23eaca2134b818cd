"""Seed initial data

Creates the platform super admin (idempotent). Users sign in with OTP,
so only a phone number is needed.

Usage:
    python seed_data.py [+61400000000] [--name "Full Name"] [--email admin@example.com]
"""
import argparse
from app.core.access import SUPER_ADMIN
from app.core.database import SessionLocal, init_db
from app.models.models import User, UserRole

DEFAULT_PHONE = "+61400000000"
DEFAULT_NAME = "Super Admin"


def seed_super_admin(db, phone: str = DEFAULT_PHONE, full_name: str = DEFAULT_NAME, email: str = None) -> User:
    """Create the user if missing and make sure it holds the super_admin role"""
    user = db.query(User).filter(User.phone == phone).first()
    if not user:
        user = User(phone=phone, full_name=full_name, email=email)
        db.add(user)
        db.flush()
        print(f"✓ Created user: {user.full_name} ({user.phone})")
    else:
        print(f"User {user.phone} already exists (ID: {user.id})")

    has_role = db.query(UserRole).filter(
        UserRole.user_id == user.id,
        UserRole.role == SUPER_ADMIN
    ).first()
    if not has_role:
        db.add(UserRole(user_id=user.id, role=SUPER_ADMIN))
        print(f"✓ Granted {SUPER_ADMIN} to {user.phone}")

    db.commit()
    db.refresh(user)
    return user


def seed_data(phone: str, full_name: str, email: str = None):
    init_db()
    db = SessionLocal()

    try:
        user = seed_super_admin(db, phone=phone, full_name=full_name, email=email)

        print("\n" + "="*50)
        print("✅ Seed data created successfully!")
        print("="*50)
        print(f"\nSuper admin: {user.full_name}")
        print(f"  Phone: {user.phone}")
        print("  Sign in with an OTP sent to this number")

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the super admin account")
    parser.add_argument("phone", nargs="?", default=DEFAULT_PHONE)
    parser.add_argument("--name", default=DEFAULT_NAME)
    parser.add_argument("--email", default=None)
    args = parser.parse_args()

    print("Seeding database with initial data...")
    seed_data(args.phone, args.name, args.email)
