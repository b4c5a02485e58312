import argparse
import os

from database import SessionLocal, engine, Base
from app_utils.constants import UserRole
from app_utils.security import get_password_hash
import crud


def create_admin(name, email, password, phone=None, role=UserRole.ADMIN):
    """Create a STAFF or ADMIN user, or promote the existing account with that email."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = crud.get_user_by_email(db, email)
        if user:
            if user.role == role:
                print(f"User {email} is already {role.value}.")
                return user
            user.role = role
            db.commit()
            db.refresh(user)
            print(f"Promoted {email} to {role.value}.")
            return user

        user = crud.create_user(
            db,
            name=name,
            email=email,
            hashed_password=get_password_hash(password),
            phone=phone,
            role=role,
        )
        print(f"Created {role.value} {email} (id={user.id}).")
        return user
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote a staff or admin user")
    parser.add_argument("--name", default=os.getenv("ADMIN_NAME", "Administrator"))
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    parser.add_argument("--phone", default=os.getenv("ADMIN_PHONE"))
    parser.add_argument("--role", choices=["STAFF", "ADMIN"], default="ADMIN")
    args = parser.parse_args()

    if not args.email or not args.password:
        parser.error("--email and --password (or ADMIN_EMAIL / ADMIN_PASSWORD) are required")

    create_admin(args.name, args.email, args.password, args.phone, UserRole(args.role))
