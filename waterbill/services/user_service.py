"""User provisioning and credential helpers."""

import hashlib
import logging
import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from waterbill.models.customer import Customer
from waterbill.models.user import User, UserRole

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 260_000


def random_token(nbytes: int = 48) -> str:
    """URL-safe random string with ``nbytes`` of entropy."""
    return secrets.token_urlsafe(nbytes)


def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS
    ).hex()
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest}"


class UserService:
    """Service for user-related operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def get_by_username(self, username: str) -> User | None:
        return self.db.execute(select(User).where(User.username == username)).scalar_one_or_none()

    def ensure_customer_user(self, customer: Customer) -> User:
        """Return the customer's login account, provisioning one if missing.

        Links an existing account whose username equals the customer code;
        otherwise creates a CUSTOMER account with a random credential.
        Commits only when something changed.
        """
        if customer.user_id is not None:
            user = self.db.get(User, customer.user_id)
            if user is not None:
                return user

        user = self.get_by_username(customer.code)
        created = user is None
        try:
            if created:
                user = User(
                    username=customer.code,
                    name=customer.name,
                    phone=customer.phone,
                    password_hash=hash_password(random_token(12)),
                    role=UserRole.CUSTOMER,
                    is_active=True,
                )
                self.db.add(user)
                self.db.flush()
            customer.user_id = user.id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "%s user %d for customer %s",
            "Provisioned" if created else "Linked",
            user.id,
            customer.code,
        )
        return user


__all__ = [
    "UserService",
    "hash_password",
    "random_token",
]
