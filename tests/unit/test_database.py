"""Tests for engine construction per database URL."""

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from waterbill.models import Base, Customer
from waterbill.services import build_engine, is_memory_sqlite


class TestBuildEngine:
    def test_memory_sqlite_shares_one_connection(self):
        engine = build_engine("sqlite://")

        assert isinstance(engine.pool, StaticPool)
        assert is_memory_sqlite("sqlite:///:memory:")

    def test_file_sqlite_uses_a_connection_per_session(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'billing.db'}"
        engine = build_engine(url)

        assert not is_memory_sqlite(url)
        assert not isinstance(engine.pool, StaticPool)
        engine.dispose()

    def test_rollback_is_not_committed_by_another_session(self, tmp_path):
        """One session's commit must not persist another session's pending insert."""
        engine = build_engine(f"sqlite:///{tmp_path / 'billing.db'}")
        Base.metadata.create_all(engine)
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        writer = factory()
        reader = factory()
        try:
            writer.add(Customer(code="C001", name="Budi", initial_reading=0, is_active=True))
            writer.flush()

            reader.execute(select(func.count(Customer.id))).scalar()
            reader.commit()
            writer.rollback()

            with factory() as check:
                assert check.execute(select(func.count(Customer.id))).scalar() == 0
        finally:
            writer.close()
            reader.close()
            engine.dispose()
