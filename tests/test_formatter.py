"""
Tests for the report formatter functionality
"""

import io
from datetime import date

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ltvsense.bucketizer import summarize
from ltvsense.formatter import ReportFormatter
from ltvsense.models import Customer, CustomerSegment


def render(renderable) -> str:
    console = Console(file=io.StringIO(), width=200, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


class TestReportFormatter:
    """Test cases for ReportFormatter class"""

    def setup_method(self):
        """Set up test fixtures"""
        self.formatter = ReportFormatter()
        self.customers = [
            Customer(
                id="1",
                name="Alice",
                email="alice@example.com",
                join_date=date(2024, 1, 15),
                source_total_spent=1200.0,
                source_purchase_count=4,
                predicted_value=420.0,
                segment=CustomerSegment.HIGH_VALUE,
            ),
            Customer(
                id="2",
                name="Bob",
                email="bob@example.com",
                join_date=date(2023, 6, 1),
                error="rate limited",
            ),
        ]

    def test_format_customers(self):
        """Test one table row per customer"""
        table = self.formatter.format_customers(self.customers)

        assert isinstance(table, Table)
        assert table.row_count == 2

        output = render(table)
        assert "Alice" in output
        assert "$1,200.00" in output
        assert "$420.00" in output
        assert "High-Value" in output
        assert "rate limited" in output

    def test_format_empty_customers(self):
        table = self.formatter.format_customers([])
        assert table.row_count == 0

    def test_format_summary(self):
        """Test key metrics and distribution rendering"""
        panel = self.formatter.format_summary(summarize(self.customers))

        assert isinstance(panel, Panel)
        output = render(panel)
        assert "Average Predicted Value:" in output
        assert "$420.00" in output
        assert "Customers with Prediction:" in output
        assert "$251-500" in output
        assert "█" in output

    def test_format_summary_without_predictions(self):
        """Test an empty distribution renders without bars"""
        output = render(self.formatter.format_summary(summarize(self.customers[1:])))

        assert "$0.00" in output
        assert "█" not in output

    def test_format_report_with_notice(self):
        report = self.formatter.format_report(self.customers, summarize(self.customers), "Error for Bob: rate limited")

        output = render(report)
        assert "Alert" in output
        assert "Error for Bob: rate limited" in output

    def test_format_report_without_notice(self):
        output = render(self.formatter.format_report(self.customers, summarize(self.customers)))
        assert "Alert" not in output

    def test_status(self):
        """Test the status column for each customer state"""
        alice, bob = self.customers

        assert self.formatter._format_status(alice).plain == "predicted"
        assert self.formatter._format_status(bob).plain == "rate limited"
        assert self.formatter._format_status(
            Customer(id="3", name="C", email="c", join_date=date(2024, 1, 1), is_enriching=True)
        ).plain == "working"
        assert self.formatter._format_status(
            Customer(id="4", name="D", email="d", join_date=date(2024, 1, 1))
        ).plain == "pending"
