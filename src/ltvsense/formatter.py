"""
Rich text formatter for customer tables and value statistics
"""

from typing import Iterable, Optional

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import Customer, CustomerSegment, ValueSummary


class ReportFormatter:
    """
    Formatter for terminal reports
    """

    BAR_WIDTH = 40

    def __init__(self):
        # Color scheme for segments
        self.colors = {
            CustomerSegment.HIGH_VALUE: "bold green",
            CustomerSegment.MEDIUM_VALUE: "green",
            CustomerSegment.LOW_VALUE: "yellow",
            CustomerSegment.AT_RISK: "red",
            CustomerSegment.NEW: "cyan",
            CustomerSegment.UNKNOWN: "dim white",
        }

    def format_report(
        self,
        customers: Iterable[Customer],
        summary: ValueSummary,
        notice: Optional[str] = None
    ) -> Group:
        """
        Customer table, summary panel and (if any) the notice
        Returns Rich Group object containing the report
        """
        parts = [self.format_customers(customers), self.format_summary(summary)]
        if notice:
            parts.append(self.format_notice(notice))
        return Group(*parts)

    def format_customers(self, customers: Iterable[Customer]) -> Table:
        """One row per customer"""
        table = Table(show_header=True, header_style="bold", title="Customers")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Email")
        table.add_column("Joined")
        table.add_column("Total Spent", justify="right")
        table.add_column("Purchases", justify="right")
        table.add_column("Predicted Value", justify="right")
        table.add_column("Segment")
        table.add_column("Status")

        for customer in customers:
            table.add_row(
                customer.id,
                customer.name,
                customer.email,
                customer.join_date.isoformat(),
                self._money(customer.source_total_spent),
                str(customer.source_purchase_count) if customer.source_purchase_count is not None else "-",
                self._money(customer.predicted_value),
                Text(customer.segment.value, style=self.colors[customer.segment]),
                self._format_status(customer),
            )

        return table

    def format_summary(self, summary: ValueSummary) -> Panel:
        """
        Key metrics, segment counts and the value distribution as bars
        Returns a Rich Panel containing the summary
        """
        metrics = Table.grid(padding=(0, 2))
        metrics.add_column(style="bold")
        metrics.add_column()
        metrics.add_row("Average Predicted Value:", f"${summary.average_value:.2f}")
        metrics.add_row("Customers with Prediction:", str(summary.customers_with_value))

        segments = Table.grid(padding=(0, 2))
        segments.add_column()
        segments.add_column(justify="right")
        for segment, count in summary.segment_counts:
            segments.add_row(Text(segment.value, style=self.colors[segment]), str(count))

        return Panel(
            Group(
                metrics,
                Text("\nSegments", style="bold"),
                segments,
                Text("\nValue Distribution", style="bold"),
                self._format_distribution(summary),
            ),
            title="[bold]Key Metrics[/bold]",
            border_style="blue"
        )

    def format_notice(self, notice: str) -> Panel:
        return Panel(Text(notice), title="[bold]Alert[/bold]", border_style="red")

    def _format_distribution(self, summary: ValueSummary) -> Table:
        chart = Table.grid(padding=(0, 1))
        chart.add_column(style="dim")
        chart.add_column()
        chart.add_column(justify="right")

        if not summary.distribution:
            return chart

        max_count = max(bucket.count for bucket in summary.distribution)
        for bucket in summary.distribution:
            length = round(bucket.count / max_count * self.BAR_WIDTH) if max_count else 0
            chart.add_row(bucket.range, Text("█" * length, style="cyan"), str(bucket.count))

        return chart

    def _format_status(self, customer: Customer) -> Text:
        if customer.error:
            return Text(customer.error, style="red")
        if customer.is_enriching or customer.is_fetching_retention or customer.is_fetching_marketing:
            return Text("working", style="yellow")
        if customer.retention_strategies or customer.marketing_ideas:
            return Text("advised", style="green")
        if customer.has_prediction:
            return Text("predicted", style="green")
        return Text("pending", style="dim")

    @staticmethod
    def _money(value: Optional[float]) -> str:
        return f"${value:,.2f}" if value is not None else "-"
