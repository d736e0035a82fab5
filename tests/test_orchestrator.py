"""
Tests for sequential enrichment
"""

from datetime import date
from unittest.mock import Mock

from ltvsense.orchestrator import EnrichmentOrchestrator, NOTHING_TO_ENRICH
from ltvsense.store import CustomerStore
from ltvsense.models import Customer, CustomerSegment, Prediction, Progress
from ltvsense.exceptions import EnrichmentError, EnrichmentNotConfigured
from ltvsense.llm_manager import LLMManager
from ltvsense.model_providers import Completion


def make_customer(customer_id, name, **kwargs):
    return Customer(
        id=customer_id,
        name=name,
        email=f"{name.lower()}@example.com",
        join_date=date(2024, 1, 1),
        **kwargs
    )


class TestEnrichAll:
    """Test cases for the bulk enrichment run"""

    def setup_method(self):
        """Set up three eligible customers"""
        self.store = CustomerStore([
            make_customer("1", "Alice"),
            make_customer("2", "Bob"),
            make_customer("3", "Carol"),
        ])
        self.enricher = Mock()
        self.orchestrator = EnrichmentOrchestrator(self.store, self.enricher)

    def test_partial_failure_is_isolated(self):
        """Test the second failure is recorded while the others succeed"""
        self.enricher.predict_value.side_effect = [
            Prediction(120.0, CustomerSegment.MEDIUM_VALUE),
            EnrichmentError("rate limited"),
            Prediction(900.0, CustomerSegment.HIGH_VALUE),
        ]
        progress = []

        final = self.orchestrator.enrich_all(on_progress=progress.append)

        assert progress == [Progress(1, 3), Progress(2, 3), Progress(3, 3)]
        assert final == Progress(3, 3)
        assert self.store.notice == "Error for Bob: rate limited"

        alice, bob, carol = self.store.customers
        assert all(not c.is_enriching for c in (alice, bob, carol))
        assert alice.predicted_value == 120.0
        assert alice.segment is CustomerSegment.MEDIUM_VALUE
        assert carol.predicted_value == 900.0
        assert carol.segment is CustomerSegment.HIGH_VALUE
        assert bob.predicted_value is None
        assert bob.segment is CustomerSegment.UNKNOWN
        assert bob.error == "rate limited"
        assert alice.error is None and carol.error is None

    def test_only_last_failure_is_the_notice(self):
        """Test earlier failures stay on their customers only"""
        self.enricher.predict_value.side_effect = [
            EnrichmentError("first"),
            Prediction(10.0, CustomerSegment.LOW_VALUE),
            EnrichmentError("second"),
        ]

        self.orchestrator.enrich_all()

        assert self.store.notice == "Error for Carol: second"
        assert self.store.get("1").error == "first"

    def test_calls_are_in_collection_order_and_marked_in_flight(self):
        """Test customers are processed one by one with is_enriching set"""
        seen = []

        def predict(customer):
            seen.append((customer.id, customer.is_enriching))
            # The other customers are idle while this one is in flight
            assert [c.is_enriching for c in self.store].count(True) == 1
            return Prediction(50.0, CustomerSegment.NEW)

        self.enricher.predict_value.side_effect = predict

        self.orchestrator.enrich_all()

        assert seen == [("1", True), ("2", True), ("3", True)]

    def test_nothing_eligible(self):
        """Test a run with nothing to do only sets the notice"""
        store = CustomerStore([
            make_customer("1", "Alice", predicted_value=10.0, segment=CustomerSegment.LOW_VALUE),
            make_customer("2", "Bob", is_enriching=True),
        ])
        orchestrator = EnrichmentOrchestrator(store, self.enricher)
        progress = []

        final = orchestrator.enrich_all(on_progress=progress.append)

        assert final == Progress(0, 0)
        assert progress == []
        assert store.notice == NOTHING_TO_ENRICH
        self.enricher.predict_value.assert_not_called()

    def test_rerun_picks_up_only_failed_customers(self):
        """Test a second run retries customers still lacking a prediction"""
        self.enricher.predict_value.side_effect = [
            Prediction(1.0, CustomerSegment.LOW_VALUE),
            EnrichmentError("timeout"),
            Prediction(2.0, CustomerSegment.LOW_VALUE),
            Prediction(3.0, CustomerSegment.LOW_VALUE),
        ]

        self.orchestrator.enrich_all()
        progress = []
        self.orchestrator.enrich_all(on_progress=progress.append)

        assert progress == [Progress(1, 1)]
        assert self.store.get("2").predicted_value == 3.0
        assert self.store.get("2").error is None
        assert self.store.notice is None

    def test_not_configured_fails_every_customer(self):
        """Test an unusable collaborator fails each call without stopping the run"""
        self.enricher.predict_value.side_effect = EnrichmentNotConfigured("no API key")

        final = self.orchestrator.enrich_all()

        assert final == Progress(3, 3)
        assert self.enricher.predict_value.call_count == 3
        assert all(c.error == "no API key" for c in self.store)
        assert self.store.notice == "Error for Carol: no API key"

    def test_unexpected_error_is_isolated(self):
        """Test any exception fails only its customer and clears the in-flight flag"""
        self.enricher.predict_value.side_effect = [
            Prediction(10.0, CustomerSegment.LOW_VALUE),
            OverflowError("int too large to convert to float"),
            Prediction(30.0, CustomerSegment.MEDIUM_VALUE),
        ]

        final = self.orchestrator.enrich_all()

        assert final == Progress(3, 3)
        assert all(not c.is_enriching for c in self.store)
        assert self.store.get("2").error == "int too large to convert to float"
        assert self.store.get("3").predicted_value == 30.0
        assert [c.id for c in self.store.pending_enrichment()] == ["2"]

    def test_oversized_prediction_does_not_halt_run(self):
        """Test a prediction too large for a float fails only that customer"""
        completions = iter([
            '{"predictedValue": 10, "segment": "Low-Value"}',
            '{"predictedValue": 1' + "0" * 400 + ', "segment": "High-Value"}',
            '{"predictedValue": 30, "segment": "New"}',
        ])
        provider = Mock()
        provider.complete_json.side_effect = lambda *args: Completion(next(completions))
        orchestrator = EnrichmentOrchestrator(self.store, LLMManager(provider=provider))

        orchestrator.enrich_all()

        alice, bob, carol = self.store.customers
        assert alice.predicted_value == 10.0
        assert bob.predicted_value is None
        assert bob.is_enriching is False
        assert "out of range" in bob.error
        assert carol.predicted_value == 30.0
        assert self.store.notice.startswith("Error for Bob:")


class TestSingleCustomerOperations:
    """Test cases for single-customer enrichment and advice"""

    def setup_method(self):
        """Set up one predicted and one unpredicted customer"""
        self.store = CustomerStore([
            make_customer("1", "Alice", predicted_value=300.0, segment=CustomerSegment.HIGH_VALUE),
            make_customer("2", "Bob"),
        ])
        self.enricher = Mock()
        self.orchestrator = EnrichmentOrchestrator(self.store, self.enricher)

    def test_enrich_customer(self):
        self.enricher.predict_value.return_value = Prediction(42.0, CustomerSegment.AT_RISK)

        customer = self.orchestrator.enrich_customer("2")

        assert customer.predicted_value == 42.0
        assert customer.segment is CustomerSegment.AT_RISK
        assert customer.is_enriching is False

    def test_enrich_unknown_customer(self):
        assert self.orchestrator.enrich_customer("missing") is None
        self.enricher.predict_value.assert_not_called()

    def test_fetch_retention_strategies(self):
        """Test strategies are stored for a predicted customer"""
        self.enricher.retention_strategies.return_value = ["Call them", "Send a gift", "Offer a plan"]

        customer = self.orchestrator.fetch_retention_strategies("1")

        self.enricher.retention_strategies.assert_called_once_with(300.0, CustomerSegment.HIGH_VALUE)
        assert customer.retention_strategies == ("Call them", "Send a gift", "Offer a plan")
        assert customer.is_fetching_retention is False
        assert customer.marketing_ideas is None

    def test_fetch_marketing_ideas(self):
        """Test ideas are stored independently of strategies"""
        self.enricher.marketing_ideas.return_value = ["Early access"]

        customer = self.orchestrator.fetch_marketing_ideas("1")

        assert customer.marketing_ideas == ("Early access",)
        assert customer.retention_strategies is None
        assert customer.is_fetching_marketing is False

    def test_advice_requires_prediction(self):
        """Test advice is not fetched before a prediction exists"""
        assert self.orchestrator.fetch_retention_strategies("2") is None
        assert self.orchestrator.fetch_marketing_ideas("2") is None

        self.enricher.retention_strategies.assert_not_called()
        self.enricher.marketing_ideas.assert_not_called()

    def test_advice_failure(self):
        """Test an advice failure is recorded on the customer and the notice"""
        self.enricher.marketing_ideas.side_effect = EnrichmentError("bad JSON")

        customer = self.orchestrator.fetch_marketing_ideas("1")

        assert customer.error == "bad JSON"
        assert customer.is_fetching_marketing is False
        assert customer.predicted_value == 300.0
        assert self.store.notice == "Error for Alice: bad JSON"

    def test_fetch_advice_for_all(self):
        """Test advice is fetched for predicted customers only"""
        self.enricher.retention_strategies.return_value = ["r1"]
        self.enricher.marketing_ideas.return_value = ["m1"]
        progress = []

        final = self.orchestrator.fetch_advice_for_all(on_progress=progress.append)

        assert final == Progress(1, 1)
        assert progress == [Progress(1, 1)]
        assert self.store.get("1").retention_strategies == ("r1",)
        assert self.store.get("1").marketing_ideas == ("m1",)
        assert self.store.get("2").retention_strategies is None

    def test_unexpected_advice_error_clears_flag(self):
        self.enricher.retention_strategies.side_effect = KeyError("strategies")

        customer = self.orchestrator.fetch_retention_strategies("1")

        assert customer.is_fetching_retention is False
        assert customer.error == "'strategies'"
        assert self.store.notice == "Error for Alice: 'strategies'"
