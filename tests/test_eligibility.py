"""
Tests for the eligibility gate and chat input validators.
Run from project root: python -m pytest tests/test_eligibility.py -v
"""
import unittest
from datetime import date

from schemas.application import ApplicationRecord, BusinessDetails, Director, RegistryLookup
from services.eligibility import business_gate, evaluate_eligibility, explain_eligibility, registration_age_months
from services.validators import (
    AMOUNT_ABOVE_MAXIMUM,
    AMOUNT_BELOW_MINIMUM,
    AMOUNT_NOT_A_NUMBER,
    AMOUNT_NOT_POSITIVE,
    validate_abn,
    validate_amount,
    validate_date_of_birth,
    validate_deposit,
    validate_email,
    validate_phone,
)

AS_OF = date(2025, 6, 1)


def _lookup(registered, gst=True, gst_date=None, entity_type="company", status="Active"):
    return RegistryLookup(
        abn="51824753556",
        abn_status=status,
        abn_registered_date=registered,
        gst_registered=gst,
        gst_registered_date=gst_date,
        entity_name="Acme Transport Pty Ltd",
        entity_type=entity_type,
    )


def _eligible_record(**lookup_kwargs):
    lookup = _lookup(date(2019, 1, 1), gst_date=date(2019, 2, 1), **lookup_kwargs)
    record = ApplicationRecord(
        registry_lookup=lookup,
        business=BusinessDetails(
            abn=lookup.abn,
            abn_registered_date=lookup.abn_registered_date,
            gst_registered=lookup.gst_registered,
        ),
        directors=[Director(first_name="Jo", last_name="Smith")],
    )
    return record.with_value("asset.asset_price_inc_gst", 75_000)


class TestBusinessGate(unittest.TestCase):
    def test_young_abn_always_too_young(self):
        """Under 24 months routes to abn_too_young whatever the GST status."""
        self.assertEqual(business_gate(_lookup(date(2024, 1, 1)), AS_OF), "abn_too_young")
        self.assertEqual(business_gate(_lookup(date(2024, 1, 1), gst=False), AS_OF), "abn_too_young")

    def test_no_gst(self):
        self.assertEqual(business_gate(_lookup(date(2020, 1, 1), gst=False), AS_OF), "no_gst")

    def test_young_gst(self):
        lookup = _lookup(date(2020, 1, 1), gst_date=date(2024, 12, 1))
        self.assertEqual(business_gate(lookup, AS_OF), "gst_too_young")

    def test_pass_and_not_found(self):
        self.assertEqual(business_gate(_lookup(date(2020, 1, 1), gst_date=date(2020, 1, 1)), AS_OF), "pass")
        self.assertEqual(business_gate(None, AS_OF), "not_found")

    def test_boundary_24_months(self):
        self.assertEqual(registration_age_months(date(2023, 6, 1), AS_OF), 24)
        self.assertEqual(business_gate(_lookup(date(2023, 6, 1)), AS_OF), "pass")
        self.assertEqual(business_gate(_lookup(date(2023, 6, 2)), AS_OF), "abn_too_young")


class TestEvaluateEligibility(unittest.TestCase):
    def test_eligible_record_passes(self):
        result = evaluate_eligibility(_eligible_record(), AS_OF)
        self.assertTrue(result.passed)
        self.assertEqual(result.fail_reasons, [])
        self.assertIn("meet our initial eligibility", explain_eligibility(result))

    def test_collects_fail_reasons(self):
        record = _eligible_record().replace(
            business=BusinessDetails(abn_registered_date=date(2025, 1, 1), gst_registered=False)
        )
        record = record.with_value("asset.asset_price_inc_gst", 3_000)
        result = evaluate_eligibility(record, AS_OF)
        self.assertFalse(result.passed)
        self.assertEqual(len(result.fail_reasons), 3)
        self.assertIn("5 months", result.fail_reasons[0])
        self.assertIn("GST", result.fail_reasons[1])
        self.assertIn("Minimum loan amount", result.fail_reasons[2])
        self.assertIn("1. ", explain_eligibility(result))

    def test_inactive_abn(self):
        result = evaluate_eligibility(_eligible_record(status="Cancelled"), AS_OF)
        self.assertFalse(result.passed)
        self.assertTrue(any("Cancelled" in r for r in result.fail_reasons))

    def test_director_required_unless_sole_trader(self):
        company = _eligible_record().replace(directors=[])
        self.assertFalse(evaluate_eligibility(company, AS_OF).passed)
        sole_trader = _eligible_record(entity_type="sole_trader").replace(directors=[])
        self.assertTrue(evaluate_eligibility(sole_trader, AS_OF).passed)

    def test_business_use_is_soft(self):
        record = _eligible_record().with_value("loan.business_use_percentage", 30)
        result = evaluate_eligibility(record, AS_OF)
        self.assertTrue(result.passed)
        check = next(c for c in result.checks if c.name == "Business Use")
        self.assertFalse(check.passed)
        self.assertFalse(check.hard)

    def test_old_used_asset_fails_age_at_term_end(self):
        record = _eligible_record().with_value("asset.asset_condition", "used_8_plus")
        record = record.with_value("asset.asset_year", 2012)
        result = evaluate_eligibility(record, AS_OF)
        self.assertFalse(result.passed)
        self.assertTrue(any("years old at the end" in r for r in result.fail_reasons))


class TestValidators(unittest.TestCase):
    def test_amount_messages_are_distinct(self):
        record = ApplicationRecord()
        self.assertEqual(validate_amount("lots", record), AMOUNT_NOT_A_NUMBER)
        self.assertEqual(validate_amount("0", record), AMOUNT_NOT_POSITIVE)
        self.assertEqual(validate_amount("4,999", record), AMOUNT_BELOW_MINIMUM)
        self.assertEqual(validate_amount("600k", record), AMOUNT_ABOVE_MAXIMUM)
        self.assertIsNone(validate_amount("75k", record))

    def test_deposit_below_price(self):
        record = ApplicationRecord().with_value("asset.asset_price_inc_gst", 50_000)
        self.assertIsNone(validate_deposit("10k", record))
        self.assertIsNotNone(validate_deposit("50k", record))
        self.assertEqual(validate_deposit("ten", record), AMOUNT_NOT_A_NUMBER)

    def test_abn_email_phone(self):
        record = ApplicationRecord()
        self.assertIsNone(validate_abn("51 824 753 556", record))
        self.assertIsNotNone(validate_abn("51 824 753 557", record))
        self.assertIsNone(validate_email("jo@example.com", record))
        self.assertIsNotNone(validate_email("jo@example", record))
        self.assertIsNone(validate_phone("0412 345 678", record))
        self.assertIsNotNone(validate_phone("0412", record))

    def test_date_of_birth(self):
        record = ApplicationRecord()
        self.assertIsNone(validate_date_of_birth("01/02/1980", record))
        self.assertIsNotNone(validate_date_of_birth("next tuesday", record))
        self.assertIsNotNone(validate_date_of_birth(f"01/01/{date.today().year - 5}", record))


if __name__ == "__main__":
    unittest.main()
