"""
Whole-file import: parse, build, replace the collection
"""

import logging
from typing import List, Optional

from .entity_builder import build_customers
from .exceptions import LTVSenseError
from .models import Customer
from .record_parser import RecordParser
from .store import CustomerStore

logger = logging.getLogger(__name__)


def import_customers(content: str, store: CustomerStore, parser: Optional[RecordParser] = None) -> List[Customer]:
    """
    Import file content into the store, replacing any previous collection

    All or nothing: on SchemaError or FieldValidationError the store is
    emptied, the error message becomes the store notice and the error is
    re-raised. Lines with the wrong field count are skipped, not fatal.

    Returns the imported customers
    """
    parser = parser or RecordParser()
    store.notice = None

    try:
        records = parser.parse(content)
        customers = build_customers(records, parser.line_numbers)
    except LTVSenseError as e:
        logger.error(f"Import failed: {e}")
        store.clear()
        store.notice = str(e)
        raise

    store.replace_all(customers)
    logger.info(
        f"Imported {len(customers)} customer(s)"
        + (f", skipped {len(parser.skipped_lines)} malformed line(s)" if parser.skipped_lines else "")
    )
    return customers
