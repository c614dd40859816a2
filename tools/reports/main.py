"""
CLI tool to report stock levels per branch.

Usage:
    poetry run python -m tools.reports.main
    poetry run python -m tools.reports.main --branch mirpur --low-stock 5
    poetry run python -m tools.reports.main --category E-LIQUID --format markdown
    poetry run python -m tools.reports.main --output inventory.csv
"""

import csv
import sys
from io import StringIO
from typing import Any

import click  # type: ignore
from pymongo.database import Database

from storefront.config import configure_logging, get_settings
from storefront.db import close_client, get_database
from storefront.db.repositories import ProductRepository, SettingsRepository
from storefront.db.repositories.products import exact_ci
from storefront.models import stock_key


def get_report_data(
    db: Database[dict[str, Any]],
    branches: list[str],
    category: str | None = None,
    status: str | None = "active",
    low_stock: int | None = None,
) -> list[dict[str, Any]]:
    """
    Collect one row per product with its stock in each branch.

    With ``low_stock`` only products below the threshold in at least one of
    ``branches`` are kept.
    """
    query: dict[str, Any] = {}
    if category:
        query["category"] = exact_ci(category)
    if status and status != "all":
        query["status"] = status

    rows: list[dict[str, Any]] = []
    for product in ProductRepository(db).iter_all(query):
        levels = {b: product.stock.get(stock_key(b), 0) for b in branches}
        if low_stock is not None and not any(n < low_stock for n in levels.values()):
            continue
        rows.append({
            "name": product.name,
            "barcode": product.barcode or "",
            "category": product.category,
            "subcategory": product.subcategory,
            **levels,
            "total": sum(levels.values()),
        })
    return rows


def format_csv(data: list[dict[str, Any]], branches: list[str]) -> str:
    """Format data as CSV."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["name", "barcode", "category", "subcategory", *branches, "total"])
    for row in data:
        writer.writerow([row["name"], row["barcode"], row["category"], row["subcategory"]]
                        + [row[b] for b in branches] + [row["total"]])
    return output.getvalue()


def format_markdown(data: list[dict[str, Any]], branches: list[str]) -> str:
    """Format data as markdown table."""
    columns = ["name", "barcode", "category", *branches, "total"]
    lines = [
        "| " + " | ".join(columns) + " |",
        "|" + "|".join("---" for _ in columns) + "|",
    ]
    for row in data:
        name = row["name"].replace("|", "\\|")
        values = [name, row["barcode"], row["category"], *(str(row[b]) for b in branches), str(row["total"])]
        lines.append("| " + " | ".join(values) + " |")
    return "\n".join(lines)


@click.command()
@click.option(
    "--branch", "-b",
    "branch_names",
    multiple=True,
    help="Branch to include (repeatable, defaults to every registered branch)",
)
@click.option("--category", "-c", default=None, help="Only products in this category")
@click.option(
    "--status", "-s",
    type=click.Choice(["active", "inactive", "draft", "all"]),
    default="active",
    help="Product status to include (default: active)",
)
@click.option(
    "--low-stock", "-l",
    type=click.IntRange(min=1),
    default=None,
    help="Only list products with fewer units than this in a branch",
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Output file path (defaults to stdout)",
)
@click.option(
    "--format", "-f",
    "output_format",
    type=click.Choice(["csv", "markdown"]),
    default="csv",
    help="Output format (default: csv)",
)
def main(
    branch_names: tuple[str, ...],
    category: str | None,
    status: str,
    low_stock: int | None,
    output: str | None,
    output_format: str,
) -> None:
    """Generate a stock report across branches."""
    settings = get_settings()
    configure_logging(settings)
    db = get_database()

    try:
        registered = SettingsRepository(db).get_branches(settings.default_branches)
        branches = [b.strip().lower() for b in branch_names] or registered
        unknown = sorted(set(branches) - set(registered))
        if unknown:
            click.echo(f"Unknown branch(es): {', '.join(unknown)}", err=True)
            sys.exit(1)

        data = get_report_data(db, branches, category=category, status=status, low_stock=low_stock)
    finally:
        close_client()

    if not data:
        click.echo("No products matched the report filters", err=True)
        sys.exit(1)

    if output_format == "csv":
        content = format_csv(data, branches)
    else:
        content = format_markdown(data, branches)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(content)
        click.echo(f"Report written to: {output}")
    else:
        click.echo(content)


if __name__ == "__main__":
    main()
