"""
Customer entity model
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Tuple


class CustomerSegment(Enum):
    """Customer classification used for reporting and advice generation"""
    HIGH_VALUE = "High-Value"
    MEDIUM_VALUE = "Medium-Value"
    LOW_VALUE = "Low-Value"
    AT_RISK = "At-Risk"
    NEW = "New"
    UNKNOWN = "Unknown"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "CustomerSegment":
        """
        Map a free-form label ("high value", "AT_RISK", "Medium-Value") to a
        segment, falling back to UNKNOWN
        """
        if not isinstance(label, str):
            return cls.UNKNOWN

        key = label.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls[key]
        except KeyError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Purchase:
    """
    A single (possibly synthesized) purchase

    Attributes:
        id: unique within the owning customer
        date: calendar date of the purchase
        amount: non-negative currency value
        items: descriptive labels, not parsed any further
    """
    id: str
    date: date
    amount: float
    items: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError(f"Purchase amount must be non-negative, got {self.amount}")


@dataclass(frozen=True)
class Customer:
    """
    Canonical customer entity

    Instances are immutable; the store swaps in a new instance for every
    update so readers never see a half-applied change.

    Attributes:
        id: unique within a collection
        name: display name ("N/A" when absent from input)
        email: display email ("N/A" when absent from input)
        join_date: date shown as the join date (the source's last purchase date)
        purchases: synthesized purchase history, in synthesis order
        predicted_value: predicted 12-month value, None until enrichment succeeds
        segment: classification, UNKNOWN until enrichment succeeds
        retention_strategies: advice strings, None until fetched
        marketing_ideas: advice strings, None until fetched
        source_total_spent: raw total spent carried through from input
        source_purchase_count: raw purchase count carried through from input
        source_last_purchase_date: original last purchase date string
        is_enriching / is_fetching_retention / is_fetching_marketing: in-flight flags
        error: last per-entity failure message
    """
    id: str
    name: str
    email: str
    join_date: date
    purchases: Tuple[Purchase, ...] = ()
    predicted_value: Optional[float] = None
    segment: CustomerSegment = CustomerSegment.UNKNOWN
    retention_strategies: Optional[Tuple[str, ...]] = None
    marketing_ideas: Optional[Tuple[str, ...]] = None
    source_total_spent: Optional[float] = None
    source_purchase_count: Optional[int] = None
    source_last_purchase_date: Optional[str] = None
    is_enriching: bool = False
    is_fetching_retention: bool = False
    is_fetching_marketing: bool = False
    error: Optional[str] = None

    @property
    def has_prediction(self) -> bool:
        """True once a predicted value (and with it a segment) is known"""
        return self.predicted_value is not None

    @property
    def needs_enrichment(self) -> bool:
        """Eligible for a bulk enrichment run"""
        return self.predicted_value is None and not self.is_enriching


@dataclass(frozen=True)
class Prediction:
    """Value prediction returned by the enrichment collaborator"""
    predicted_value: float
    segment: CustomerSegment


@dataclass(frozen=True)
class Progress:
    """Bulk run progress: `current` of `total` entities processed"""
    current: int
    total: int

    def __str__(self) -> str:
        return f"{self.current}/{self.total}"


@dataclass(frozen=True)
class BucketRange:
    """Inclusive numeric range [min_value, max_value] with a display label"""
    min_value: float
    max_value: float
    label: str

    def contains(self, value: float) -> bool:
        return self.min_value <= value <= self.max_value


@dataclass(frozen=True)
class ValueBucket:
    """Number of customers whose predicted value fell in a range"""
    range: str
    count: int


@dataclass(frozen=True)
class ValueSummary:
    """
    Summary statistics over a customer collection

    Attributes:
        customers_with_value: number of customers carrying a predicted value
        average_value: mean predicted value (0.0 when none)
        segment_counts: customers per segment, every segment present
        distribution: bucket counts in configured order
    """
    customers_with_value: int
    average_value: float
    segment_counts: Tuple[Tuple[CustomerSegment, int], ...] = field(default_factory=tuple)
    distribution: Tuple[ValueBucket, ...] = field(default_factory=tuple)
