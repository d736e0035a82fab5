"""
Validation and normalization of raw records into customer entities
"""

import math
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from dateutil import parser as dateparser

from .exceptions import FieldValidationError
from .models import Customer, CustomerSegment, Purchase
from .record_parser import RawRecord

logger = logging.getLogger(__name__)

MISSING_VALUE = "N/A"
MIN_YEAR = 1900
MAX_YEAR = 2100

# Fill the month or day a date string leaves out ("March 2024" -> 2024-03-01).
# The second default differs only in year: a string parsing differently under
# the two carries no year of its own.
_DATE_DEFAULT = datetime(2000, 1, 1)
_OTHER_YEAR_DEFAULT = datetime(2004, 1, 1)


def build_customer(record: RawRecord, index: int, line_number: Optional[int] = None) -> Customer:
    """
    Build one customer from a raw record

    Args:
        record: field name -> string value, as produced by RecordParser
        index: 0-based position of the record among the data rows
        line_number: 1-based source line of the record, when known

    Raises FieldValidationError naming the value, customer and source row
    """
    customer_id = record.get("id") or f"gen-row-{index}"
    name = record.get("name") or MISSING_VALUE
    email = record.get("email") or MISSING_VALUE
    row = line_number or index + 2  # 1-based, counting the header line
    who = f"{name} (ID: {customer_id}) at row {row}"

    raw_total = record.get("total_spent", "")
    total_spent = _parse_amount(raw_total)
    if total_spent is None:
        raise FieldValidationError(
            f"Invalid total_spent value \"{raw_total}\" for {who}. Must be a non-negative number.",
            row=row, field="total_spent", value=raw_total
        )

    raw_count = record.get("purchase_count", "")
    purchase_count = _parse_count(raw_count)
    if purchase_count is None:
        raise FieldValidationError(
            f"Invalid purchase_count value \"{raw_count}\" for {who}. Must be a non-negative integer.",
            row=row, field="purchase_count", value=raw_count
        )

    raw_date = record.get("last_purchase_date", "")
    try:
        parsed = dateparser.parse(raw_date, default=_DATE_DEFAULT)
        if parsed.year != dateparser.parse(raw_date, default=_OTHER_YEAR_DEFAULT).year:
            raise ValueError("no year")
    except (ValueError, OverflowError):
        raise FieldValidationError(
            f"Invalid or unparseable last_purchase_date \"{raw_date}\" for {who}. "
            "Please use a common, unambiguous date format (e.g., YYYY-MM-DD, MM/DD/YYYY).",
            row=row, field="last_purchase_date", value=raw_date
        )

    if not MIN_YEAR <= parsed.year <= MAX_YEAR:
        raise FieldValidationError(
            f"Unlikely year ({parsed.year}) parsed from last_purchase_date \"{raw_date}\" "
            f"for {who}. Please check the date format.",
            row=row, field="last_purchase_date", value=raw_date
        )

    # The source only knows the last purchase date; it doubles as join date
    join_date = parsed.date()

    return Customer(
        id=customer_id,
        name=name,
        email=email,
        join_date=join_date,
        purchases=synthesize_purchases(customer_id, join_date, total_spent, purchase_count),
        predicted_value=None,
        segment=CustomerSegment.UNKNOWN,
        source_total_spent=total_spent,
        source_purchase_count=purchase_count,
        source_last_purchase_date=raw_date,
    )


def build_customers(
    records: Iterable[RawRecord],
    line_numbers: Optional[Sequence[int]] = None
) -> List[Customer]:
    """
    Build the whole collection; any invalid record fails the entire batch

    `line_numbers` gives each record's source line for error messages;
    without it rows are counted as if no line had been skipped.

    Raises FieldValidationError
    """
    customers = []
    seen = set()

    for index, record in enumerate(records):
        row = line_numbers[index] if line_numbers else index + 2
        customer = build_customer(record, index, row)
        if customer.id in seen:
            raise FieldValidationError(
                f"Duplicate id \"{customer.id}\" for {customer.name} at row {row}. "
                "Customer ids must be unique.",
                row=row, field="id", value=customer.id
            )
        seen.add(customer.id)
        customers.append(customer)

    logger.debug(f"Built {len(customers)} customer(s)")
    return customers


def synthesize_purchases(customer_id: str, when: date, total_spent: float, purchase_count: int):
    """
    Stand in for the itemized history the source file lacks

    One averaged purchase when both count and total are positive, one
    purchase of the full total when only the total is, otherwise none.
    """
    if purchase_count > 0 and total_spent > 0:
        return (
            Purchase(
                id=f"purchase-{customer_id}-1",
                date=when,
                amount=total_spent / purchase_count,
                items=(f"{purchase_count} items (averaged)",),
            ),
        )
    elif total_spent > 0:
        return (
            Purchase(
                id=f"purchase-{customer_id}-single",
                date=when,
                amount=total_spent,
            ),
        )
    return ()


def _parse_amount(value: str):
    """Non-negative finite float, or None"""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount < 0:
        return None
    return amount


def _parse_count(value: str):
    """Non-negative int, or None"""
    try:
        count = int(value)
    except (TypeError, ValueError):
        return None
    if count < 0:
        return None
    return count
