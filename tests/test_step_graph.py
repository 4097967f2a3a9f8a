"""
Tests for the step graph and the AssetMX Express conversation table.
Run from project root: python -m pytest tests/test_step_graph.py -v
"""
import unittest

from schemas.application import ApplicationRecord, RegistryLookup, RegistrySearchResult
from services.chat_flow import (
    MANUAL_ENTRY_FALLBACK,
    NO_VALUE,
    PROGRESS_TOTAL,
    build_default_graph,
    extract_abn,
    map_option_to_value,
    progress_for,
    summary_lines,
    validate_balloon_choice,
)
from services.step_graph import InputKind, Outcome, Step, StepGraph, UnknownStepError


class TestStep(unittest.TestCase):
    def test_auto_progress_precedence(self):
        """Free-entry kinds wait for a turn even with an action and no options."""
        self.assertTrue(Step(id="a", input_kind=InputKind.CONFIRM, action="x").auto_progresses([]))
        self.assertFalse(Step(id="a", input_kind=InputKind.CONFIRM, action="x").auto_progresses(["Done"]))
        self.assertFalse(Step(id="a", input_kind=InputKind.CONFIRM).auto_progresses([]))
        for kind in (InputKind.TEXT, InputKind.NUMBER, InputKind.EMAIL, InputKind.PHONE, InputKind.DATE):
            self.assertFalse(Step(id="a", input_kind=kind, action="x").auto_progresses([]))

    def test_resolvers_accept_constants_and_functions(self):
        record = ApplicationRecord().with_value("business.business_name", "Acme")
        constant = Step(id="a", prompts=("Hi",), options=("Yes",), next_step="b")
        dynamic = Step(
            id="a",
            prompts=lambda r: [f"Hi {r.business.business_name}"],
            options=lambda r: ["One", "Two"],
            next_step=lambda answer, r: "c" if answer == "One" else "d",
        )
        self.assertEqual(constant.resolve_prompts(record), ["Hi"])
        self.assertEqual(constant.resolve_options(record), ["Yes"])
        self.assertEqual(constant.resolve_next("anything", record), "b")
        self.assertEqual(dynamic.resolve_prompts(record), ["Hi Acme"])
        self.assertEqual(dynamic.resolve_options(record), ["One", "Two"])
        self.assertEqual(dynamic.resolve_next("One", record), "c")

    def test_terminal_and_skip(self):
        self.assertTrue(Step(id="end", outcome=Outcome.COMPLETE).is_terminal)
        step = Step(id="a", skip_if=lambda r: r.is_sole_trader)
        self.assertFalse(step.should_skip(ApplicationRecord()))


class TestStepGraph(unittest.TestCase):
    def test_duplicate_ids_rejected(self):
        with self.assertRaises(ValueError):
            StepGraph([Step(id="a"), Step(id="a")], entry_step_id="a")

    def test_unknown_entry_and_lookup(self):
        with self.assertRaises(UnknownStepError):
            StepGraph([Step(id="a")], entry_step_id="b")
        graph = StepGraph([Step(id="a", next_step="a")], entry_step_id="a")
        with self.assertRaises(UnknownStepError):
            graph.get("missing")
        self.assertIn("a", graph)

    def test_check_reports_problems(self):
        graph = StepGraph([Step(id="a", next_step="nowhere"), Step(id="b")], entry_step_id="a")
        problems = graph.check()
        self.assertEqual(len(problems), 2)


class TestDefaultConversation(unittest.TestCase):
    def setUp(self):
        self.graph = build_default_graph()

    def test_constant_transitions_are_valid(self):
        self.assertEqual(self.graph.check(), [])
        self.assertEqual(self.graph.entry_step_id, "greeting")

    def test_every_option_leads_to_a_known_step(self):
        records = [
            ApplicationRecord(),
            ApplicationRecord(
                registry_lookup=RegistryLookup(abn="51824753556"),
                registry_search_results=[RegistrySearchResult(abn="51 824 753 556", entity_name="Acme", state="NSW")],
            ),
        ]
        for record in records:
            for step_id in self.graph.step_ids():
                step = self.graph.get(step_id)
                if step.is_terminal:
                    continue
                for answer in step.resolve_options(record) or [""]:
                    target = step.resolve_next(answer, record)
                    self.assertIn(target, self.graph, f"{step_id} -> {target} on {answer!r}")

    def test_every_step_has_progress(self):
        for step_id in self.graph.step_ids():
            current, total = progress_for(step_id)
            self.assertEqual(total, PROGRESS_TOTAL)
            self.assertTrue(1 <= current <= total, step_id)

    def test_terminal_outcomes(self):
        self.assertEqual(self.graph.get("end_complete").outcome, Outcome.COMPLETE)
        self.assertEqual(self.graph.get("end_lead_captured").outcome, Outcome.LEAD_CAPTURED)
        self.assertFalse(self.graph.get("end_saved").persist)
        self.assertFalse(self.graph.get("save_for_later").persist)

    def test_submit_step_auto_progresses(self):
        step = self.graph.get("submitting")
        self.assertTrue(step.auto_progresses(step.resolve_options(ApplicationRecord())))
        manual = self.graph.get("abn_manual_entry")
        self.assertFalse(manual.auto_progresses(manual.resolve_options(ApplicationRecord())))

    def test_search_options_include_manual_fallback(self):
        record = ApplicationRecord(registry_search_results=[
            RegistrySearchResult(abn="51 824 753 556", entity_name="Acme", state="NSW"),
        ])
        options = self.graph.get("abn_search_results").resolve_options(record)
        self.assertEqual(options, ["Acme (NSW) - ABN: 51 824 753 556", MANUAL_ENTRY_FALLBACK])
        empty = self.graph.get("abn_search_results").resolve_options(ApplicationRecord())
        self.assertEqual(empty, ["Enter ABN manually", "Try a different name"])

    def test_summary_mentions_loan_and_repayments(self):
        record = ApplicationRecord().with_value("asset.asset_price_inc_gst", 75_000)
        lines = summary_lines(record)
        self.assertIn("Loan amount: $75,000 over 60 months", lines)
        self.assertTrue(any(line.startswith("Repayments: $") for line in lines))


class TestOptionMapping(unittest.TestCase):
    def test_labels_map_case_insensitively(self):
        self.assertEqual(map_option_to_value("Brand New", "asset.asset_condition"), "new")
        self.assertEqual(map_option_to_value("5 years", "loan.term_months"), 60)
        self.assertIs(map_option_to_value("Yes", "directors.1.owns_property"), True)
        self.assertIs(map_option_to_value("No, all clear", "eligibility.clear_credit"), True)
        self.assertIs(map_option_to_value("What's a balloon?", "loan.balloon_percentage"), NO_VALUE)

    def test_unmatched_label_returned_raw(self):
        self.assertEqual(map_option_to_value(" $10k - $50k ", "eligibility.loan_band"), "$10k - $50k")

    def test_extract_abn(self):
        self.assertEqual(extract_abn("Acme (NSW) - ABN: 51 824 753 556").strip(), "51 824 753 556")
        self.assertIsNone(extract_abn(MANUAL_ENTRY_FALLBACK))

    def test_balloon_limited_by_term(self):
        five_years = ApplicationRecord().with_value("loan.term_months", 60)
        self.assertIsNone(validate_balloon_choice("30% balloon", five_years))
        self.assertEqual(
            validate_balloon_choice("40% balloon", five_years),
            "For a 5 year term, max balloon is 30%.",
        )
        self.assertIsNone(validate_balloon_choice("What's a balloon?", five_years))
        self.assertIsNotNone(validate_balloon_choice("a big one", five_years))
        options = self.graph_options(five_years)
        self.assertNotIn("40% balloon", options)
        three_years = ApplicationRecord().with_value("loan.term_months", 36)
        self.assertIn("40% balloon", self.graph_options(three_years))

    @staticmethod
    def graph_options(record):
        return build_default_graph().get("balloon_preference").resolve_options(record)


if __name__ == "__main__":
    unittest.main()
