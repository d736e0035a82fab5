"""
In-memory customer collection shared by import, enrichment and export
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

from .models import Customer

logger = logging.getLogger(__name__)


class CustomerStore:
    """
    Holds the current customer collection and the aggregate notice

    Every update swaps in a whole new Customer instance (replace-by-id), so
    a reader holding a snapshot always sees a self-consistent entity.
    """

    def __init__(self, customers: Optional[Iterable[Customer]] = None):
        self._customers: Tuple[Customer, ...] = tuple(customers or ())
        self.notice: Optional[str] = None

    @property
    def customers(self) -> Tuple[Customer, ...]:
        """Snapshot of the collection, in import order"""
        return self._customers

    def __len__(self) -> int:
        return len(self._customers)

    def __iter__(self):
        return iter(self._customers)

    def get(self, customer_id: str) -> Optional[Customer]:
        """Current version of a customer, or None if unknown"""
        for customer in self._customers:
            if customer.id == customer_id:
                return customer
        return None

    def replace_all(self, customers: Iterable[Customer]) -> None:
        """Swap the whole collection; there is no merge with the previous one"""
        self._customers = tuple(customers)
        logger.debug(f"Collection replaced with {len(self._customers)} customer(s)")

    def clear(self) -> None:
        self._customers = ()

    def update(self, customer_id: str, **changes) -> Optional[Customer]:
        """
        Replace a customer with a copy carrying `changes`

        The entity's error is cleared unless `changes` sets one.
        Returns the new instance, or None if the id is unknown
        """
        changes.setdefault("error", None)

        updated: List[Customer] = []
        result = None
        for customer in self._customers:
            if customer.id == customer_id:
                result = replace(customer, **changes)
                updated.append(result)
            else:
                updated.append(customer)

        if result is None:
            logger.debug(f"Ignoring update for unknown customer {customer_id}")
            return None

        self._customers = tuple(updated)
        return result

    def pending_enrichment(self) -> List[Customer]:
        """Customers without a prediction that are not already being enriched"""
        return [c for c in self._customers if c.needs_enrichment]
