"""
Sequential, fault-isolated customer enrichment
"""

import logging
from typing import Callable, List, Optional

from .exceptions import EnrichmentError
from .models import Customer, Progress
from .store import CustomerStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Progress], None]

NOTHING_TO_ENRICH = "All customers have a predicted value or are being enriched."


class EnrichmentOrchestrator:
    """
    Drives enrichment calls against the customers held in a store

    Calls are made strictly one at a time, in collection order. A failed
    call, whatever it raised, is recorded on its customer and as the store
    notice and clears that customer's in-flight flag; it never stops the
    remaining customers and is never retried automatically.
    """

    def __init__(self, store: CustomerStore, enricher):
        """
        Initialize the orchestrator

        Args:
            store: holds the customer collection; all updates go through it
            enricher: collaborator exposing predict_value(customer),
                retention_strategies(value, segment) and marketing_ideas(value, segment)
        """
        self.store = store
        self.enricher = enricher

    def enrich_all(self, on_progress: Optional[ProgressCallback] = None) -> Progress:
        """
        Predict value and segment for every customer still lacking one

        Progress is reported after each customer, success or failure.
        Returns the final progress
        """
        pending = [c.id for c in self.store.pending_enrichment()]
        if not pending:
            self.store.notice = NOTHING_TO_ENRICH
            logger.info(NOTHING_TO_ENRICH)
            return Progress(0, 0)

        self.store.notice = None
        logger.info(f"Enriching {len(pending)} customer(s)")

        progress = self._run_sequentially(pending, self.enrich_customer, on_progress)

        failed = sum(1 for customer_id in pending if self.store.get(customer_id).error)
        logger.info(f"Enrichment complete: {len(pending) - failed} succeeded, {failed} failed")
        return progress

    def fetch_advice_for_all(self, on_progress: Optional[ProgressCallback] = None) -> Progress:
        """Fetch retention strategies and marketing ideas for every predicted customer"""
        targets = [c.id for c in self.store if c.has_prediction]
        logger.info(f"Fetching advice for {len(targets)} customer(s)")

        def fetch_both(customer_id: str) -> None:
            self.fetch_retention_strategies(customer_id)
            self.fetch_marketing_ideas(customer_id)

        return self._run_sequentially(targets, fetch_both, on_progress)

    def enrich_customer(self, customer_id: str) -> Optional[Customer]:
        """
        Predict value and segment for one customer
        Returns the updated customer, or None if the id is unknown
        """
        customer = self.store.update(customer_id, is_enriching=True)
        if customer is None:
            return None

        try:
            prediction = self.enricher.predict_value(customer)
        except Exception as e:
            return self._record_failure(customer, e, is_enriching=False)

        return self.store.update(
            customer_id,
            predicted_value=prediction.predicted_value,
            segment=prediction.segment,
            is_enriching=False,
        )

    def fetch_retention_strategies(self, customer_id: str) -> Optional[Customer]:
        """Fetch retention strategies; only for customers with a prediction"""
        customer = self._predicted_customer(customer_id)
        if customer is None:
            return None

        customer = self.store.update(customer_id, is_fetching_retention=True)
        try:
            strategies = self.enricher.retention_strategies(customer.predicted_value, customer.segment)
        except Exception as e:
            return self._record_failure(customer, e, is_fetching_retention=False)

        return self.store.update(
            customer_id,
            retention_strategies=tuple(strategies),
            is_fetching_retention=False,
        )

    def fetch_marketing_ideas(self, customer_id: str) -> Optional[Customer]:
        """Fetch marketing ideas; only for customers with a prediction"""
        customer = self._predicted_customer(customer_id)
        if customer is None:
            return None

        customer = self.store.update(customer_id, is_fetching_marketing=True)
        try:
            ideas = self.enricher.marketing_ideas(customer.predicted_value, customer.segment)
        except Exception as e:
            return self._record_failure(customer, e, is_fetching_marketing=False)

        return self.store.update(
            customer_id,
            marketing_ideas=tuple(ideas),
            is_fetching_marketing=False,
        )

    def _run_sequentially(
        self,
        customer_ids: List[str],
        step: Callable[[str], object],
        on_progress: Optional[ProgressCallback]
    ) -> Progress:
        total = len(customer_ids)
        progress = Progress(0, total)

        for i, customer_id in enumerate(customer_ids):
            logger.debug(f"Processing customer {i + 1}/{total}: {customer_id}")
            step(customer_id)
            progress = Progress(i + 1, total)
            if on_progress:
                on_progress(progress)

        return progress

    def _predicted_customer(self, customer_id: str) -> Optional[Customer]:
        customer = self.store.get(customer_id)
        if customer is None:
            return None
        if not customer.has_prediction:
            logger.warning(f"Customer {customer_id} has no predicted value yet; skipping advice")
            return None
        return customer

    def _record_failure(self, customer: Customer, error: Exception, **flags) -> Customer:
        message = str(error) or type(error).__name__
        if isinstance(error, EnrichmentError):
            logger.warning(f"Enrichment failed for {customer.name} ({customer.id}): {message}")
        else:
            logger.warning(
                f"Unexpected {type(error).__name__} enriching {customer.name} ({customer.id}): {message}",
                exc_info=error
            )
        self.store.notice = f"Error for {customer.name}: {message}"
        return self.store.update(customer.id, error=message, **flags)
