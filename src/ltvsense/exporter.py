"""
Serialization of the customer collection back to comma-separated text
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .models import Customer

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "id", "name", "email", "joinDate",
    "sourceTotalSpent", "sourcePurchaseCount", "sourceLastPurchaseDate",
    "predictedValue", "segment",
    "retentionStrategy1", "retentionStrategy2", "retentionStrategy3",
    "marketingIdea1", "marketingIdea2", "marketingIdea3",
)

ROW_SEPARATOR = "\r\n"


class HeaderPolicy(str, Enum):
    """Whether the export starts with a header row"""
    EMIT_HEADER = "emit-header"
    NO_HEADER = "no-header"


def escape_field(value) -> str:
    """
    Quote a field if it contains a comma, a double quote or a line break

    Quotes inside a quoted field are doubled. None becomes an empty field.
    """
    if value is None:
        return ""

    text = str(value)
    if any(ch in text for ch in (",", '"', "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text


def customer_to_row(customer: Customer) -> List[str]:
    """The fixed export columns for one customer"""
    strategies = _pad(customer.retention_strategies, 3)
    ideas = _pad(customer.marketing_ideas, 3)

    fields = [
        customer.id,
        customer.name,
        customer.email,
        customer.join_date.isoformat(),
        _money(customer.source_total_spent),
        customer.source_purchase_count,
        customer.source_last_purchase_date,
        _money(customer.predicted_value),
        customer.segment.value,
        *strategies,
        *ideas,
    ]
    return [escape_field(f) for f in fields]


def export_customers(
    customers: Iterable[Customer],
    header_policy: HeaderPolicy = HeaderPolicy.EMIT_HEADER
) -> str:
    """
    Serialize customers, one row each, rows joined with CRLF

    Returns an empty string for an empty collection, even with a header
    policy that emits headers. Exported files cannot be re-imported: the
    column set differs from the import schema.
    """
    customers = list(customers)
    if not customers:
        return ""

    rows = []
    if header_policy == HeaderPolicy.EMIT_HEADER:
        rows.append(",".join(EXPORT_COLUMNS))
    rows.extend(",".join(customer_to_row(c)) for c in customers)

    return ROW_SEPARATOR.join(rows)


def write_export(
    customers: Iterable[Customer],
    path: Path,
    header_policy: HeaderPolicy = HeaderPolicy.EMIT_HEADER
) -> bool:
    """
    Write the export to `path`
    Returns False (and writes nothing) when there are no customers
    """
    content = export_customers(customers, header_policy)
    if not content:
        logger.info("No customers to export")
        return False

    # newline="" keeps the CRLF row separators as written
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)

    logger.info(f"Exported customers to {path}")
    return True


def _money(value: Optional[float]) -> Optional[str]:
    return f"{value:.2f}" if value is not None else None


def _pad(items: Optional[Sequence[str]], size: int) -> List[Optional[str]]:
    items = list(items or ())[:size]
    return items + [None] * (size - len(items))
