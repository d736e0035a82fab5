"""
Custom exceptions
"""

from typing import Optional


class LTVSenseError(Exception):
    """Base exception"""
    pass


class SchemaError(LTVSenseError):
    """File is too short or its header misses a required column"""
    pass


class RowShapeError(LTVSenseError):
    """
    A data line whose field count differs from the header

    Never raised by the parser: it is collected as a diagnostic for the
    skipped line.
    """

    def __init__(self, line_number: int, raw_line: str, expected: int, actual: int):
        self.line_number = line_number
        self.raw_line = raw_line
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Line {line_number} has {actual} values, expected {expected}. "
            f"Skipping line: \"{raw_line}\""
        )


class FieldValidationError(LTVSenseError):
    """A record field could not be converted; aborts the whole import"""

    def __init__(self, message: str, row: int, field: str, value: Optional[str] = None):
        self.row = row
        self.field = field
        self.value = value
        super().__init__(message)


class EnrichmentError(LTVSenseError):
    """Issues calling the enrichment collaborator"""
    pass


class EnrichmentNotConfigured(EnrichmentError):
    """The enrichment collaborator is unusable (missing key, no model)"""
    pass
