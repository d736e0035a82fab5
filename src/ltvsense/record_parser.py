"""
Parser for comma-separated customer record files
"""

import re
import logging
from typing import Dict, List, Sequence

from .exceptions import SchemaError, RowShapeError

logger = logging.getLogger(__name__)

# Columns every input file must carry (matched case-insensitively)
REQUIRED_HEADERS = (
    "id",
    "name",
    "email",
    "total_spent",
    "purchase_count",
    "last_purchase_date",
)

RawRecord = Dict[str, str]


class RecordParser:
    """
    Splits raw text into string records keyed by lower-cased header name

    Quoted fields may contain commas and doubled quotes, but never line
    breaks: lines are split before fields are tokenized.
    """

    LINE_SPLIT_PATTERN = re.compile(r"\r\n|\n")

    def __init__(self, required_headers: Sequence[str] = REQUIRED_HEADERS):
        """
        Initialize the record parser
        required_headers: column names that must appear in the header row
        """
        self.required_headers = [h.lower() for h in required_headers]
        self.skipped_lines: List[RowShapeError] = []
        self.line_numbers: List[int] = []

    def parse(self, content: str) -> List[RawRecord]:
        """
        Parse file content into records, in file order

        Lines whose field count does not match the header are skipped and
        recorded in `skipped_lines`. `line_numbers` holds the 1-based source
        line of each returned record.

        Raises SchemaError if there is no data row or a required column is missing
        """
        self.skipped_lines = []
        self.line_numbers = []

        lines = self.LINE_SPLIT_PATTERN.split(content.strip())
        if len(lines) < 2:
            raise SchemaError("File must have a header row and at least one data row.")

        headers = self.parse_header(lines[0])

        records = []
        for i in range(1, len(lines)):
            values = self.tokenize(lines[i])

            if len(values) != len(headers):
                diagnostic = RowShapeError(
                    line_number=i + 1,
                    raw_line=lines[i],
                    expected=len(headers),
                    actual=len(values)
                )
                logger.warning(str(diagnostic))
                self.skipped_lines.append(diagnostic)
                continue

            records.append(dict(zip(headers, values)))
            self.line_numbers.append(i + 1)

        logger.debug(f"Parsed {len(records)} record(s), skipped {len(self.skipped_lines)} line(s)")
        return records

    def parse_header(self, line: str) -> List[str]:
        """
        Split the header row and check the required columns
        Returns the lower-cased column names in file order
        """
        headers = [h.strip().lower() for h in line.split(",")]

        for required in self.required_headers:
            if required not in headers:
                raise SchemaError(
                    f"Missing required column: {required}. "
                    "Ensure header row is present and correct."
                )

        return headers

    def tokenize(self, line: str) -> List[str]:
        """
        Split a data line into trimmed field values

        A double quote toggles quoted mode; inside a quoted field a doubled
        quote stands for one literal quote. Commas only separate fields
        outside quoted mode.
        """
        values = []
        current = []
        in_quotes = False
        i = 0

        while i < len(line):
            char = line[i]

            if char == '"':
                if in_quotes and line[i + 1:i + 2] == '"':
                    current.append('"')
                    i += 2
                    continue
                in_quotes = not in_quotes
            elif char == "," and not in_quotes:
                values.append("".join(current).strip())
                current = []
            else:
                current.append(char)

            i += 1

        values.append("".join(current).strip())
        return values
