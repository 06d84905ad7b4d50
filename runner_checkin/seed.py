import argparse
import getpass
import logging
from typing import Optional

from sqlalchemy.orm import Session

from runner_checkin import models
from runner_checkin.auth_utils import hash_password
from runner_checkin.database import Base, SessionLocal, engine

logger = logging.getLogger("runner_checkin.seed")


def create_or_update_user(db: Session, user_name: str, password: str, email: Optional[str] = None,
                          role: models.UserRole = models.UserRole.staff) -> models.User:
    """
    Create a desk user, or reset the password and role of an existing one.

    Args:
        db (Session): Open database session; committed on success.
        user_name (str): Login name.
        password (str): Plain-text password, stored as a bcrypt hash.
        email (str): Optional contact address.
        role (UserRole): ``staff`` or ``admin``.
    """
    user = db.query(models.User).filter(models.User.user_name == user_name).first()
    if user:
        logger.info(f"User {user_name} exists; resetting password and role")
        user.password_hash = hash_password(password)
        user.role = role
        user.is_active = True
        if email:
            user.email = email
    else:
        user = models.User(user_name=user_name, password_hash=hash_password(password), email=email, role=role)
        db.add(user)
    db.commit()
    db.refresh(user)
    return user


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Create or reset a check-in desk user.")
    parser.add_argument("user_name")
    parser.add_argument("--email")
    parser.add_argument("--role", choices=[r.value for r in models.UserRole], default="admin")
    parser.add_argument("--password", help="Prompted for when omitted")
    args = parser.parse_args(argv)

    password = args.password or getpass.getpass(f"Password for {args.user_name}: ")
    if not password:
        parser.error("password must not be empty")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = create_or_update_user(db, args.user_name, password, args.email, models.UserRole(args.role))
        logger.info(f"User {user.id} ({user.user_name}) ready with role {user.role.value}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
