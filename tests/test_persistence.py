"""
Tests for snapshot stores and the SQL application repository.
SQL tests run against an in-memory sqlite+aiosqlite database.
Run from project root: python -m pytest tests/test_persistence.py -v
"""
import unittest
from datetime import date, datetime, timezone

from sqlalchemy import func, select

from database import build_engine, build_session_factory, init_db
from models import Lead as LeadRow
from models import LoanApplication
from schemas.application import ApplicationRecord, Lead, QuoteSnapshot, RegistryLookup
from schemas.chat import ChatSnapshot
from services.persistence import InMemorySnapshotStore, SqlSnapshotStore
from services.quote_calculator import calculate_quote
from services.repository import SqlApplicationRepository


def _record():
    record = ApplicationRecord(
        registry_lookup=RegistryLookup(abn="51824753556", abn_registered_date=date(2019, 1, 1), gst_registered=True),
    )
    record = record.with_value("business.abn", "51824753556")
    record = record.with_value("directors.0.date_of_birth", date(1980, 2, 1))
    record = record.with_value("directors.0.email", "jo@example.com")
    return record.with_value("asset.asset_price_inc_gst", 75_000)


def _quote(record):
    inputs = record.quote_inputs()
    result = calculate_quote(
        inputs.asset_type, inputs.asset_condition, inputs.loan_amount, inputs.term_months, inputs.balloon_percentage
    )
    return QuoteSnapshot(inputs=inputs, result=result, calculated_at=datetime.now(timezone.utc))


class TestInMemorySnapshotStore(unittest.IsolatedAsyncioTestCase):
    async def test_save_load_clear(self):
        store = InMemorySnapshotStore()
        snapshot = ChatSnapshot(step_id="asset_price", record=_record())
        await store.save("s1", snapshot)
        self.assertEqual(await store.load("s1"), snapshot)
        await store.clear("s1")
        self.assertIsNone(await store.load("s1"))

    async def test_sessions_are_independent(self):
        store = InMemorySnapshotStore()
        await store.save("a", ChatSnapshot(step_id="greeting", record=ApplicationRecord()))
        self.assertIsNone(await store.load("b"))
        await store.clear("b")
        self.assertIn("a", store)

    async def test_stored_snapshot_is_a_copy(self):
        store = InMemorySnapshotStore()
        record = _record()
        await store.save("s1", ChatSnapshot(step_id="greeting", record=record))
        loaded = await store.load("s1")
        self.assertIsNot(loaded.record, record)


class _SqlTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = build_engine("sqlite+aiosqlite://")
        await init_db(self.engine)
        self.session_factory = build_session_factory(self.engine)

    async def asyncTearDown(self):
        await self.engine.dispose()


class TestSqlSnapshotStore(_SqlTestCase):
    async def test_save_load_clear(self):
        store = SqlSnapshotStore(self.session_factory)
        snapshot = ChatSnapshot(step_id="director_dob", record=_record())
        await store.save("s1", snapshot)
        self.assertEqual(await store.load("s1"), snapshot)
        await store.clear("s1")
        self.assertIsNone(await store.load("s1"))

    async def test_save_overwrites(self):
        store = SqlSnapshotStore(self.session_factory)
        await store.save("s1", ChatSnapshot(step_id="greeting", record=ApplicationRecord()))
        await store.save("s1", ChatSnapshot(step_id="asset_price", record=_record()))
        loaded = await store.load("s1")
        self.assertEqual(loaded.step_id, "asset_price")
        self.assertEqual(loaded.record.directors[0].email, "jo@example.com")

    async def test_clear_missing_is_noop(self):
        store = SqlSnapshotStore(self.session_factory)
        await store.clear("nobody")
        self.assertIsNone(await store.load("nobody"))


class TestSqlApplicationRepository(_SqlTestCase):
    async def test_submit_writes_application(self):
        repository = SqlApplicationRepository(self.session_factory)
        record = _record()
        receipt = await repository.submit(record, _quote(record), "s1")
        self.assertEqual(receipt.status, "submitted")
        self.assertTrue(receipt.reference.startswith("AMX-"))
        async with self.session_factory() as session:
            app = (await session.execute(select(LoanApplication))).scalar_one()
        self.assertEqual(app.reference, receipt.reference)
        self.assertEqual(app.session_key, "s1")
        self.assertEqual(app.loan["loan_amount"], 75_000)
        self.assertEqual(app.directors[0]["date_of_birth"], "1980-02-01")
        self.assertIn("monthly_repayment", app.quote["result"])

    async def test_save_lead(self):
        repository = SqlApplicationRepository(self.session_factory)
        saved = await repository.save_lead(
            Lead(name="Sam", phone="0412345678", email="sam@example.com", consent_to_share=True),
            source="novated",
        )
        self.assertTrue(saved)
        async with self.session_factory() as session:
            count = (await session.execute(select(func.count()).select_from(LeadRow))).scalar_one()
            row = (await session.execute(select(LeadRow))).scalar_one()
        self.assertEqual(count, 1)
        self.assertEqual(row.source, "novated")
        self.assertTrue(row.consent_to_share)


if __name__ == "__main__":
    unittest.main()
