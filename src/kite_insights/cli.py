import json
import typer
from pathlib import Path
from typing import Any, Optional
from datetime import date, datetime

from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from kite_insights.categorization.rules import validate_rule
from kite_insights.domain.enums import PeriodKind, Severity, TrendDirection
from kite_insights.domain.models import InsightPeriod
from kite_insights.logging_setup import configure_logging
from kite_insights.repositories.json_store import JsonSnapshotStore
from kite_insights.services.insight_service import InsightService

app = typer.Typer(
    name="kite-insights",
    help="Categorize transactions and analyze spending",
    add_completion=False,
)

console = Console()

DATE_FORMATS = ["%Y-%m-%d"]

SEVERITY_STYLE = {
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.ALERT: "bold red",
}

TREND_ICON = {
    TrendDirection.INCREASING: "[red]▲[/red]",
    TrendDirection.DECREASING: "[green]▼[/green]",
    TrendDirection.STABLE: "[dim]●[/dim]",
}


class State:
    verbose: bool = False
    service: Optional[InsightService] = None
    store: Optional[JsonSnapshotStore] = None


state = State()


@app.callback()
def main(
    snapshot: Path = typer.Option(
        Path("snapshot.json"),
        "--snapshot", "-s",
        help="JSON snapshot with transactions, categories and rules",
        envvar="KITE_INSIGHTS_SNAPSHOT",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
):
    """
    Kite Insights - Categorize transactions, detect anomalies and forecast spending.
    """
    configure_logging("DEBUG" if verbose else None)

    state.store = JsonSnapshotStore(snapshot)
    state.service = InsightService(state.store)
    state.verbose = verbose


def _as_date(value: Optional[datetime]) -> Optional[date]:
    return value.date() if value else None


def _print_json(data: Any):
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _fail(e: Exception):
    console.print(f"[bold red]Error:[/bold red] {e}")
    if state.verbose:
        console.print_exception()
    raise typer.Exit(code=1)


def _resolve_period(
    period: PeriodKind,
    as_of: Optional[datetime],
    start: Optional[datetime],
    end: Optional[datetime],
) -> InsightPeriod:
    if start or end:
        if not (start and end):
            raise typer.BadParameter("--start and --end must be given together")
        return InsightPeriod.custom(start.date(), end.date())
    return InsightPeriod.for_kind(period, _as_date(as_of) or date.today())


PERIOD_OPT = typer.Option(PeriodKind.MONTH, "--period", "-p", help="Reporting period")
AS_OF_OPT = typer.Option(None, "--as-of", formats=DATE_FORMATS, help="Day inside the period (default: today)")
START_OPT = typer.Option(None, "--start", formats=DATE_FORMATS, help="Custom period start")
END_OPT = typer.Option(None, "--end", formats=DATE_FORMATS, help="Custom period end")
JSON_OPT = typer.Option(False, "--json", help="Print JSON instead of tables")


@app.command(name="categorize")
def categorize(
    overwrite: bool = typer.Option(
        False,
        "--overwrite",
        help="Re-categorize transactions that already have a category",
    ),
    start: Optional[datetime] = START_OPT,
    end: Optional[datetime] = END_OPT,
    as_json: bool = JSON_OPT,
):
    """
    Preview rule-based categories for stored transactions.

    Examples:
        kite-insights categorize
        kite-insights categorize --overwrite --start 2025-01-01 --end 2025-01-31
    """
    try:
        before = {t.id: t.category_id for t in state.store.list_transactions(_as_date(start), _as_date(end))}
        categorized = state.service.categorize_all(
            start_date=_as_date(start),
            end_date=_as_date(end),
            overwrite=overwrite,
        )
        changed = [t for t in categorized if t.category_id != before.get(t.id)]

        if as_json:
            _print_json([
                {"id": t.id, "previousCategoryId": before.get(t.id), "categoryId": t.category_id}
                for t in changed
            ])
            return

        console.print(f"\n[bold]Checked {len(categorized)} transactions[/bold]")
        if not changed:
            console.print("[yellow]No category changes proposed[/yellow]")
            return

        table = Table(title="Proposed categories")
        table.add_column("Date", style="cyan")
        table.add_column("Description", style="white", max_width=40)
        table.add_column("Before", style="dim")
        table.add_column("After", style="magenta")
        table.add_column("Amount", justify="right")

        for txn in changed:
            amount_color = "green" if txn.is_income else "red"
            table.add_row(
                str(txn.day),
                txn.description[:40],
                before.get(txn.id) or "Uncategorized",
                txn.category_id,
                f"[{amount_color}]{txn.amount:,.2f}[/{amount_color}]",
            )
        console.print(table)
        console.print(f"[bold green]✓ {len(changed)} transactions would change category[/bold green]")

    except Exception as e:
        _fail(e)


@app.command(name="summary")
def summary(
    period: PeriodKind = PERIOD_OPT,
    as_of: Optional[datetime] = AS_OF_OPT,
    start: Optional[datetime] = START_OPT,
    end: Optional[datetime] = END_OPT,
    as_json: bool = JSON_OPT,
):
    """
    Cash flow, categories, trends, predictions and anomalies for a period.

    Examples:
        kite-insights summary
        kite-insights summary --period quarter --as-of 2025-02-15
        kite-insights summary --start 2025-01-01 --end 2025-01-15 --json
    """
    try:
        insight_period = _resolve_period(period, as_of, start, end)
        result = state.service.summarize(insight_period)

        if as_json:
            _print_json(result.to_dict())
            return

        flow = result.cash_flow
        net_style = "bold green" if flow.net_flow >= 0 else "bold red"
        console.print(Panel(
            f"[green]💰 Income:[/green]    ${flow.income:>10,.2f}\n"
            f"[red]💸 Expenses:[/red]  ${flow.expenses:>10,.2f}\n"
            f"{'─' * 30}\n"
            f"[{net_style}]Net:[/{net_style}]         ${flow.net_flow:>10,.2f}\n"
            f"Savings rate: {flow.savings_rate:.1f}%",
            title=f"[bold]{insight_period.label}[/bold]",
            border_style="cyan",
            padding=(1, 2),
        ))

        if result.categories:
            console.print("\n[bold]Spending by Category[/bold]")
            table = Table(show_header=True, box=None, padding=(0, 2))
            table.add_column("Category", style="cyan", no_wrap=True)
            table.add_column("Amount", justify="right", style="red")
            table.add_column("% of Total", justify="right", style="dim")
            table.add_column("Trend", justify="center")
            for insight in result.categories:
                table.add_row(
                    insight.category_name,
                    f"${insight.total_spent:,.2f}",
                    f"{insight.percentage:.1f}%",
                    TREND_ICON[insight.trend],
                )
            console.print(table)

        if result.trends:
            console.print("\n[bold]Spending Over Time[/bold]")
            table = Table(show_header=True, box=None, padding=(0, 2))
            table.add_column("Interval", style="cyan")
            table.add_column("Spent", justify="right")
            table.add_column("Change", justify="right", style="dim")
            for trend in result.trends:
                flag = " [yellow]⚠[/yellow]" if trend.is_anomaly else ""
                table.add_row(
                    trend.label,
                    f"${trend.total_spent:,.2f}{flag}",
                    f"{trend.percentage_change:+.1f}%",
                )
            console.print(table)

        for prediction in result.predictions:
            console.print(
                f"\n[bold]Prediction ({prediction.type.value}):[/bold] "
                f"${prediction.prediction:,.2f} [dim]({prediction.confidence:.0f}% confidence)[/dim]"
            )
            for hint in prediction.recommendations:
                console.print(f"  • {hint}")

        if result.anomalies:
            console.print(f"\n[bold yellow]⚠ {len(result.anomalies)} anomalies[/bold yellow] "
                          f"[dim](run `kite-insights anomalies` for details)[/dim]")

    except typer.BadParameter:
        raise
    except Exception as e:
        _fail(e)


@app.command(name="anomalies")
def anomalies(
    period: PeriodKind = PERIOD_OPT,
    as_of: Optional[datetime] = AS_OF_OPT,
    start: Optional[datetime] = START_OPT,
    end: Optional[datetime] = END_OPT,
    as_json: bool = JSON_OPT,
):
    """
    Large transactions, duplicates, spending spikes and new merchants.

    Examples:
        kite-insights anomalies --period week
    """
    try:
        insight_period = _resolve_period(period, as_of, start, end)
        found = state.service.detect_anomalies(insight_period)

        if as_json:
            _print_json([a.to_dict() for a in found])
            return

        if not found:
            console.print(Panel(
                "[green]No anomalies detected[/green]",
                title=insight_period.label,
                border_style="green",
            ))
            return

        table = Table(title=f"Anomalies - {insight_period.label}")
        table.add_column("Severity")
        table.add_column("Type", style="cyan")
        table.add_column("Amount", justify="right")
        table.add_column("Description", max_width=50)
        for anomaly in found:
            style = SEVERITY_STYLE[anomaly.severity]
            table.add_row(
                f"[{style}]{anomaly.severity.value}[/{style}]",
                anomaly.type.value,
                f"{anomaly.amount:,.2f}",
                anomaly.description,
            )
        console.print(table)

    except typer.BadParameter:
        raise
    except Exception as e:
        _fail(e)


@app.command(name="forecast")
def forecast(
    months: int = typer.Option(6, "--months", "-m", min=1, help="Months of history"),
    as_of: Optional[datetime] = AS_OF_OPT,
    as_json: bool = JSON_OPT,
):
    """
    Forecast next month's and next week's spending.

    Examples:
        kite-insights forecast --months 12
    """
    try:
        report = state.service.forecast(months_back=months, as_of=_as_date(as_of))

        if as_json:
            _print_json(report.to_dict())
            return

        month, week = report.next_month, report.next_week
        note = "\n[yellow]Not enough history for a reliable forecast[/yellow]" if month.insufficient_history else ""
        console.print(Panel(
            f"[bold]Next month:[/bold] ${month.predicted:,.2f} "
            f"(${month.range.low:,.2f} - ${month.range.high:,.2f}), "
            f"{month.confidence:.0f}% confidence\n"
            f"[bold]Next week:[/bold]  ${week.predicted:,.2f}, {week.confidence:.0f}% confidence"
            f"{note}",
            title="[bold]Forecast[/bold]",
            border_style="cyan",
        ))

        if report.by_category:
            table = Table(show_header=True, box=None, padding=(0, 2))
            table.add_column("Category", style="cyan")
            table.add_column("Next month", justify="right")
            for name, amount in sorted(report.by_category.items(), key=lambda x: x[1], reverse=True):
                table.add_row(name, f"${amount:,.2f}")
            console.print(table)

        for hint in report.recommendations:
            console.print(f"  • {hint}")

    except Exception as e:
        _fail(e)


@app.command(name="trends")
def trends(
    months: int = typer.Option(3, "--months", "-m", min=1, help="Months of history"),
    as_of: Optional[datetime] = AS_OF_OPT,
    merchants: bool = typer.Option(False, "--merchants", help="Show merchants instead of categories"),
    as_json: bool = JSON_OPT,
):
    """
    Category trends (this month vs last) or merchant spending profiles.

    Examples:
        kite-insights trends
        kite-insights trends --merchants --months 6
    """
    try:
        if merchants:
            results = state.service.merchant_analysis(months_back=months, as_of=_as_date(as_of))
        else:
            results = state.service.category_trends(months_back=months, as_of=_as_date(as_of))

        if as_json:
            _print_json([r.to_dict() for r in results])
            return

        if not results:
            console.print("[yellow]No spending found in this window[/yellow]")
            return

        table = Table(show_header=True, padding=(0, 1))
        if merchants:
            table.add_column("Merchant", style="cyan")
            table.add_column("Total", justify="right")
            table.add_column("Visits", justify="right")
            table.add_column("Frequency", style="dim")
            table.add_column("Trend", justify="center")
            for m in results:
                table.add_row(
                    m.merchant,
                    f"${m.total_spent:,.2f}",
                    str(m.transaction_count),
                    m.frequency.value,
                    TREND_ICON[m.trend],
                )
        else:
            table.add_column("Category", style="cyan")
            table.add_column("This month", justify="right")
            table.add_column("Last month", justify="right", style="dim")
            table.add_column("Change", justify="right")
            table.add_column("Trend", justify="center")
            for t in results:
                table.add_row(
                    t.category_name,
                    f"${t.current_month:,.2f}",
                    f"${t.previous_month:,.2f}",
                    f"{t.change_percent:+.1f}%",
                    TREND_ICON[t.trend],
                )
        console.print(table)

    except Exception as e:
        _fail(e)


@app.command(name="compare")
def compare(
    period: PeriodKind = PERIOD_OPT,
    as_of: Optional[datetime] = AS_OF_OPT,
    as_json: bool = JSON_OPT,
):
    """
    Compare a calendar period with the one right before it.

    Examples:
        kite-insights compare --period quarter
    """
    try:
        result = state.service.compare_periods(period, _as_date(as_of))

        if as_json:
            _print_json(result.to_dict())
            return

        table = Table(title=f"{period.value.title()} over {period.value}")
        table.add_column("", style="bold")
        table.add_column(f"{result.previous.start} - {result.previous.end}", justify="right")
        table.add_column(f"{result.current.start} - {result.current.end}", justify="right")
        table.add_column("Change", justify="right")
        table.add_row(
            "Spent",
            f"${result.previous.total:,.2f}",
            f"${result.current.total:,.2f}",
            f"{result.change.percent:+.1f}%",
        )
        table.add_row(
            "Per day",
            f"${result.previous.daily:,.2f}",
            f"${result.current.daily:,.2f}",
            f"{result.change.daily_percent:+.1f}%",
        )
        table.add_row(
            "Transactions",
            str(result.previous.transactions),
            str(result.current.transactions),
            f"{result.change.transactions_percent:+.1f}%",
        )
        console.print(table)

    except Exception as e:
        _fail(e)


@app.command(name="validate-rules")
def validate_rules(as_json: bool = JSON_OPT):
    """
    Check every stored rule and report configuration errors.

    Exits with code 1 when any rule is invalid.
    """
    try:
        raw_rules = state.store.raw_rules()
    except Exception as e:
        _fail(e)

    results = []
    for index, rule_def in enumerate(raw_rules):
        rule_id = rule_def.get("id") if isinstance(rule_def, dict) else None
        results.append((rule_id or f"#{index}", validate_rule(rule_def)))

    invalid = [(rule_id, r) for rule_id, r in results if not r.is_valid]

    if as_json:
        _print_json([{"ruleId": rule_id, **r.to_dict()} for rule_id, r in results])
    else:
        for rule_id, result in results:
            if result.is_valid:
                console.print(f"[green]✓[/green] {rule_id}")
            else:
                console.print(f"[red]✗[/red] {rule_id}")
                for error in result.errors:
                    console.print(f"    [dim]{error}[/dim]")
        console.print(f"\n[bold]{len(results) - len(invalid)} valid, {len(invalid)} invalid[/bold]")

    if invalid:
        raise typer.Exit(code=1)


def cli_main():
    """Entry point for the CLI"""
    app()


if __name__ == "__main__":
    cli_main()
