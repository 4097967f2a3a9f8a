"""
Tests for the action executor: enrichment, quoting, submission and lead capture,
and the degrade-on-failure boundary.
Run from project root: python -m pytest tests/test_actions.py -v
"""
import unittest

from schemas.application import ApplicationRecord, Director, RegistrySearchResult
from services.actions import DEFAULT_LEAD_REASON, ActionExecutor, UnknownActionError
from tests.fakes import FakeRegistry, FakeRepository, RecordingNotifier, VALID_ABN, make_lookup


def _executor(registry=None, repository=None, notifier=None):
    return ActionExecutor(
        registry=registry or FakeRegistry(make_lookup()),
        repository=repository or FakeRepository(),
        notifier=notifier or RecordingNotifier(),
        search_max_results=3,
    )


def _ready_record():
    record = ApplicationRecord(directors=[Director(first_name="Jo", last_name="Smith")])
    record = record.with_value("business.abn", VALID_ABN)
    return record.with_value("asset.asset_price_inc_gst", 75_000)


class TestActionExecutor(unittest.IsolatedAsyncioTestCase):
    async def test_registry_search_stores_results(self):
        results = [RegistrySearchResult(abn="51 824 753 556", entity_name="Acme Pty Ltd", state="NSW", score=90)]
        registry = FakeRegistry(results=results)
        record = ApplicationRecord().with_value("business.business_name", " Acme ")
        updated = await _executor(registry=registry).run("registry_search", record, "s1")
        self.assertEqual(registry.searches, ["Acme"])
        self.assertEqual(updated.business_name_search, "Acme")
        self.assertEqual(updated.registry_search_results, results)

    async def test_registry_lookup_enriches_business(self):
        record = ApplicationRecord().with_value("business.abn", "51 824 753 556")
        updated = await _executor().run("registry_lookup", record)
        self.assertEqual(updated.registry_lookup.entity_name, "Acme Transport Pty Ltd")
        self.assertEqual(updated.business.abn, VALID_ABN)
        self.assertEqual(updated.business.entity_type, "company")
        self.assertTrue(updated.business.gst_registered)
        self.assertEqual(updated.business.business_state, "NSW")

    async def test_registry_failure_degrades_to_no_enrichment(self):
        record = ApplicationRecord(registry_lookup=make_lookup()).with_value("business.abn", VALID_ABN)
        updated = await _executor(registry=FakeRegistry(fail=True)).run("registry_lookup", record)
        self.assertIsNone(updated.registry_lookup)
        self.assertEqual(updated.business.abn, VALID_ABN)

    async def test_lookup_skipped_for_bad_checksum(self):
        registry = FakeRegistry(make_lookup())
        record = ApplicationRecord(registry_lookup=make_lookup()).with_value("business.abn", "12 345 678 901")
        updated = await _executor(registry=registry).run("registry_lookup", record)
        self.assertEqual(registry.lookups, [])
        self.assertIsNone(updated.registry_lookup)

    async def test_send_director_form_notifies_additional_director(self):
        notifier = RecordingNotifier()
        record = _ready_record().with_value("directors.0.email", "jo@example.com")
        record = record.with_value("directors.1.email", "sam@example.com")
        record = record.with_value("business.entity_name", "Acme Transport Pty Ltd")
        updated = await _executor(notifier=notifier).run("send_director_form", record, "s1")
        self.assertEqual(updated, record)
        self.assertEqual(notifier.events, [("director_form_request", {
            "director_email": "sam@example.com",
            "business_name": "Acme Transport Pty Ltd",
            "primary_contact_name": "Jo Smith",
            "primary_contact_email": "jo@example.com",
        })])

    async def test_send_director_form_without_email_is_a_no_op(self):
        notifier = RecordingNotifier()
        await _executor(notifier=notifier).run("send_director_form", _ready_record())
        self.assertEqual(notifier.events, [])

    async def test_search_failure_clears_results(self):
        record = ApplicationRecord(
            registry_search_results=[RegistrySearchResult(abn="1", entity_name="Old")]
        ).with_value("business.business_name", "Acme")
        updated = await _executor(registry=FakeRegistry(fail=True)).run("registry_search", record)
        self.assertEqual(updated.registry_search_results, [])

    async def test_calculate_quote(self):
        updated = await _executor().run("calculate_quote", _ready_record())
        self.assertIsNotNone(updated.quote)
        self.assertEqual(updated.quote.inputs.loan_amount, 75_000)
        self.assertFalse(updated.quote_is_stale)

    async def test_out_of_range_quote_is_omitted(self):
        record = ApplicationRecord().with_value("asset.asset_price_inc_gst", 3_000)
        updated = await _executor().run("calculate_quote", record)
        self.assertIsNone(updated.quote)

    async def test_submit_recomputes_stale_quote(self):
        repository = FakeRepository()
        notifier = RecordingNotifier()
        record = _ready_record().replace(registry_lookup=make_lookup())
        record = record.replace(business=record.business.model_copy(update={
            "abn_registered_date": record.registry_lookup.abn_registered_date,
            "gst_registered": True,
        }))
        updated = await _executor(repository=repository, notifier=notifier).run("submit_application", record, "s1")
        self.assertTrue(updated.eligibility_passed)
        self.assertEqual(updated.submission.reference, "AMX-TEST0001")
        submitted_record, quote, session_key = repository.submitted[0]
        self.assertIsNotNone(quote)
        self.assertEqual(session_key, "s1")
        self.assertEqual(notifier.events[0][0], "application_submitted")

    async def test_submit_declined_when_ineligible(self):
        repository = FakeRepository()
        record = _ready_record().replace(registry_lookup=make_lookup(months_old=6))
        updated = await _executor(repository=repository).run("submit_application", record)
        self.assertFalse(updated.eligibility_passed)
        self.assertTrue(updated.eligibility_messages)
        self.assertIsNone(updated.submission)
        self.assertEqual(repository.submitted, [])

    async def test_submit_failure_leaves_record_unsubmitted(self):
        record = _ready_record().replace(registry_lookup=make_lookup())
        updated = await _executor(repository=FakeRepository(fail_submit=True)).run("submit_application", record)
        self.assertIsNone(updated.submission)

    async def test_notifier_failure_does_not_undo_submission(self):
        record = _ready_record().replace(registry_lookup=make_lookup())
        updated = await _executor(notifier=RecordingNotifier(fail=True)).run("submit_application", record)
        self.assertIsNotNone(updated.submission)

    async def test_save_lead_defaults_reason(self):
        repository = FakeRepository()
        record = ApplicationRecord().with_value("lead.name", "Sam")
        updated = await _executor(repository=repository).run("save_lead", record)
        lead, source = repository.leads[0]
        self.assertEqual(source, "manual_review")
        self.assertEqual(lead.reason, DEFAULT_LEAD_REASON)
        self.assertEqual(updated.lead.reason, DEFAULT_LEAD_REASON)

    async def test_save_novated_lead(self):
        repository = FakeRepository()
        await _executor(repository=repository).run("save_novated_lead", ApplicationRecord())
        self.assertEqual(repository.leads[0][1], "novated")

    async def test_unknown_action_raises(self):
        with self.assertRaises(UnknownActionError):
            await _executor().run("launch_rocket", ApplicationRecord())


if __name__ == "__main__":
    unittest.main()
