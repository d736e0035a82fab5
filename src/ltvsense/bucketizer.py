"""
Predicted value distribution and summary statistics
"""

import math
import logging
from typing import Iterable, List, Sequence

from .models import BucketRange, Customer, CustomerSegment, ValueBucket, ValueSummary

logger = logging.getLogger(__name__)

# Adjacent ranges share their edge so fractional values never fall in a gap;
# the first matching range wins.
DEFAULT_BUCKETS = (
    BucketRange(0, 50, "$0-50"),
    BucketRange(50, 100, "$51-100"),
    BucketRange(100, 250, "$101-250"),
    BucketRange(250, 500, "$251-500"),
    BucketRange(500, 1000, "$501-1k"),
    BucketRange(1000, math.inf, "$1k+"),
)


def bucketize(customers: Iterable[Customer], ranges: Sequence[BucketRange] = DEFAULT_BUCKETS) -> List[ValueBucket]:
    """
    Count customers per range of predicted value

    Customers without a prediction are ignored. Each value counts toward the
    first range containing it. Output follows `ranges` order, zero counts
    included.
    """
    counts = [0] * len(ranges)

    for customer in customers:
        value = customer.predicted_value
        if value is None:
            continue

        for i, bucket in enumerate(ranges):
            if bucket.contains(value):
                counts[i] += 1
                break
        else:
            logger.debug(f"Predicted value {value} of {customer.id} matches no range")

    return [ValueBucket(range=bucket.label, count=count) for bucket, count in zip(ranges, counts)]


def summarize(customers: Iterable[Customer], ranges: Sequence[BucketRange] = DEFAULT_BUCKETS) -> ValueSummary:
    """Average predicted value, segment counts and distribution"""
    customers = list(customers)
    values = [c.predicted_value for c in customers if c.predicted_value is not None]

    segment_counts = {segment: 0 for segment in CustomerSegment}
    for customer in customers:
        segment_counts[customer.segment] += 1

    return ValueSummary(
        customers_with_value=len(values),
        average_value=sum(values) / len(values) if values else 0.0,
        segment_counts=tuple(segment_counts.items()),
        distribution=tuple(bucketize(customers, ranges)),
    )
