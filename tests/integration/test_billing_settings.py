"""Integration tests for versioned billing settings."""

import pytest
from sqlalchemy import select

from waterbill.models import AuditLog
from waterbill.services.errors import SettingMissingError, ValidationError
from waterbill.services.settings_service import BillingSettingService


class TestPublish:
    def test_first_version(self, db_session, billing_setting):
        assert billing_setting.version == 1
        assert billing_setting.unit_rate == 5000
        assert billing_setting.due_day == 15

    def test_new_version_carries_over_missing_fields(self, db_session, billing_setting):
        setting = BillingSettingService(db_session).publish(unit_rate=6000)

        assert setting.version == 2
        assert setting.unit_rate == 6000
        assert setting.base_fee == 10000
        assert setting.company_name == "Tirta Sejahtera"

    def test_snapshot_is_latest(self, db_session, billing_setting):
        service = BillingSettingService(db_session)
        service.publish(late_fee_tier2=20000)

        snapshot = service.snapshot()

        assert snapshot.version == 2
        assert snapshot.late_fee_tier2 == 20000

    def test_publish_is_audited(self, db_session, billing_setting):
        entries = db_session.execute(
            select(AuditLog).where(AuditLog.entity_type == "setting")
        ).scalars().all()

        assert len(entries) == 1
        assert entries[0].action == "publish"

    def test_first_version_needs_unit_rate(self, db_session):
        with pytest.raises(ValidationError):
            BillingSettingService(db_session).publish(base_fee=1000)

    @pytest.mark.parametrize(
        "values", [{"unit_rate": -1}, {"due_day": 0}, {"due_day": 32}, {"discount": 5}]
    )
    def test_invalid_values(self, db_session, billing_setting, values):
        with pytest.raises(ValidationError):
            BillingSettingService(db_session).publish(**values)

    def test_snapshot_without_setting(self, db_session):
        with pytest.raises(SettingMissingError):
            BillingSettingService(db_session).snapshot()
