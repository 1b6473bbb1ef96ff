"""Integration tests for magic link issuance and single-use redemption."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from waterbill.models import AccessToken, AuthSession, Base, User, UserRole
from waterbill.services.errors import TokenError, TokenErrorReason
from waterbill.services.magic_link_service import MagicLinkService
from waterbill.services.user_service import hash_password, random_token


def _make_user(db, username="C001", role=UserRole.CUSTOMER, is_active=True):
    user = User(
        username=username,
        name="Budi Santoso",
        password_hash=hash_password(random_token(12)),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    return user


class TestIssue:
    def test_token_defaults(self, db_session, app_settings):
        user = _make_user(db_session)
        before = datetime.now(timezone.utc)

        token = MagicLinkService(db_session, app_settings).issue(user.id, bill_id=None)

        assert len(token.token) >= 32
        assert token.used_at is None
        expires_at = token.expires_at.replace(tzinfo=timezone.utc)
        assert before + timedelta(hours=23) < expires_at <= before + timedelta(hours=25)

    def test_tokens_are_unique(self, db_session, app_settings):
        user = _make_user(db_session)
        service = MagicLinkService(db_session, app_settings)

        assert service.issue(user.id).token != service.issue(user.id).token


class TestRedeem:
    def test_redeem_opens_session(self, db_session, app_settings):
        user = _make_user(db_session)
        service = MagicLinkService(db_session, app_settings)
        token = service.issue(user.id)

        redemption = service.redeem(token.token)

        assert redemption.user_id == user.id
        db_session.refresh(token)
        assert token.used_at is not None
        session = db_session.execute(
            select(AuthSession).where(AuthSession.token == redemption.session_token)
        ).scalar_one()
        assert session.user_id == user.id
        assert service.get_session_user(redemption.session_token).id == user.id

    def test_second_redeem_is_used(self, db_session, app_settings):
        user = _make_user(db_session)
        service = MagicLinkService(db_session, app_settings)
        token = service.issue(user.id)
        service.redeem(token.token)

        with pytest.raises(TokenError) as exc_info:
            service.redeem(token.token)

        assert exc_info.value.reason == TokenErrorReason.TOKEN_USED

    def test_expired(self, db_session, app_settings):
        user = _make_user(db_session)
        service = MagicLinkService(db_session, app_settings)
        token = service.issue(user.id)

        with pytest.raises(TokenError) as exc_info:
            service.redeem(token.token, now=datetime.now(timezone.utc) + timedelta(hours=25))

        assert exc_info.value.reason == TokenErrorReason.TOKEN_EXPIRED

    def test_unknown_token(self, db_session, app_settings):
        with pytest.raises(TokenError) as exc_info:
            MagicLinkService(db_session, app_settings).redeem("nope")

        assert exc_info.value.reason == TokenErrorReason.TOKEN_NOT_FOUND

    def test_inactive_user(self, db_session, app_settings):
        user = _make_user(db_session, is_active=False)
        service = MagicLinkService(db_session, app_settings)
        token = service.issue(user.id)

        with pytest.raises(TokenError) as exc_info:
            service.redeem(token.token)

        assert exc_info.value.reason == TokenErrorReason.INACTIVE_USER
        db_session.refresh(token)
        assert token.used_at is None

    def test_expired_session_has_no_user(self, db_session, app_settings):
        user = _make_user(db_session)
        service = MagicLinkService(db_session, app_settings)
        redemption = service.redeem(service.issue(user.id).token)

        later = datetime.now(timezone.utc) + timedelta(days=8)

        assert service.get_session_user(redemption.session_token, now=later) is None
        assert service.get_session_user(None) is None


class TestConcurrentRedeem:
    def test_loser_of_a_race_gets_used(self, tmp_path, app_settings):
        """Two sessions both see the token unused; only one redemption wins."""
        engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
        Base.metadata.create_all(engine)
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        with factory() as setup:
            user = _make_user(setup)
            value = MagicLinkService(setup, app_settings).issue(user.id).token

        session_a = factory()
        session_b = factory()
        try:
            stale = session_b.execute(
                select(AccessToken).where(AccessToken.token == value)
            ).scalar_one()
            assert stale.used_at is None

            MagicLinkService(session_a, app_settings).redeem(value)

            with pytest.raises(TokenError) as exc_info:
                MagicLinkService(session_b, app_settings).redeem(value)
            assert exc_info.value.reason == TokenErrorReason.TOKEN_USED

            with factory() as check:
                assert len(check.execute(select(AuthSession)).scalars().all()) == 1
        finally:
            session_a.close()
            session_b.close()
            engine.dispose()
