"""Magic-link issuance and single-use redemption."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from waterbill.config import Settings, get_settings
from waterbill.models.access_token import AccessToken, AuthSession, TokenPurpose, TokenState
from waterbill.models.user import User
from waterbill.services.errors import TokenError, TokenErrorReason
from waterbill.services.transitions import ensure_transition
from waterbill.services.user_service import random_token

logger = logging.getLogger(__name__)


@dataclass
class Redemption:
    """What a successfully redeemed link grants."""

    user_id: int
    bill_id: int | None
    session_token: str
    session_expires_at: datetime


class MagicLinkService:
    """Issues single-use access tokens and redeems them into sessions.

    Redemption claims the token with ``UPDATE ... WHERE used_at IS NULL``;
    when that touches no row another request won the race and this one
    fails with TOKEN_USED. The session is created in the same transaction
    as the claim.
    """

    def __init__(self, db_session: Session, settings: Settings | None = None):
        """Initialize with database session."""
        self.db = db_session
        self.settings = settings or get_settings()

    def issue(
        self,
        user_id: int,
        purpose: TokenPurpose = TokenPurpose.PAYMENT,
        bill_id: int | None = None,
        ttl: timedelta | None = None,
    ) -> AccessToken:
        ttl = ttl or timedelta(hours=self.settings.magic_link_ttl_hours)
        try:
            record = AccessToken(
                token=random_token(32),
                user_id=user_id,
                bill_id=bill_id,
                purpose=purpose,
                expires_at=datetime.now(timezone.utc) + ttl,
                used_at=None,
            )
            self.db.add(record)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Issued %s token %d for user %d (bill=%s)", purpose.value, record.id, user_id, bill_id
        )
        return record

    def redeem(
        self,
        token: str,
        purpose: TokenPurpose = TokenPurpose.PAYMENT,
        now: datetime | None = None,
    ) -> Redemption:
        """Consume a token at most once and open a session for its user.

        Raises:
            TokenError: TOKEN_NOT_FOUND (unknown token or other purpose),
                TOKEN_USED, TOKEN_EXPIRED or INACTIVE_USER
        """
        now = now or datetime.now(timezone.utc)
        record = self.db.execute(
            select(AccessToken).where(AccessToken.token == token)
        ).scalar_one_or_none()
        if record is None or record.purpose != purpose:
            raise TokenError(TokenErrorReason.TOKEN_NOT_FOUND)

        state = record.state(now)
        if state == TokenState.USED:
            raise TokenError(TokenErrorReason.TOKEN_USED)
        if state == TokenState.EXPIRED:
            raise TokenError(TokenErrorReason.TOKEN_EXPIRED)

        user = self.db.get(User, record.user_id)
        if user is None or not user.is_active:
            raise TokenError(TokenErrorReason.INACTIVE_USER)

        ensure_transition("token", state, TokenState.USED)
        try:
            claimed = self.db.execute(
                update(AccessToken)
                .where(AccessToken.id == record.id, AccessToken.used_at.is_(None))
                .values(used_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != 1:
                self.db.rollback()
                logger.info("Token %d lost a concurrent redemption", record.id)
                raise TokenError(TokenErrorReason.TOKEN_USED)

            session = AuthSession(
                token=random_token(48),
                user_id=user.id,
                expires_at=now + timedelta(days=self.settings.session_ttl_days),
            )
            self.db.add(session)
            self.db.commit()
        except TokenError:
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info("Redeemed token %d for user %d", record.id, user.id)
        return Redemption(
            user_id=user.id,
            bill_id=record.bill_id,
            session_token=session.token,
            session_expires_at=session.expires_at,
        )

    def get_session_user(self, session_token: str | None, now: datetime | None = None) -> User | None:
        """Active user behind a session cookie, or None."""
        if not session_token:
            return None
        now = now or datetime.now(timezone.utc)
        session = self.db.execute(
            select(AuthSession).where(AuthSession.token == session_token)
        ).scalar_one_or_none()
        if session is None or session.is_expired(now):
            return None
        user = self.db.get(User, session.user_id)
        if user is None or not user.is_active:
            return None
        return user


__all__ = ["MagicLinkService", "Redemption"]
