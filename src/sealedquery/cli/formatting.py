"""Rich rendering of query and index results for the CLI."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from sealedquery.services.query_models import IndexResult, QueryResult
from sealedquery.shared.number_utils import format_number, is_nice_number, to_count

NICE_STYLE = "bold magenta"


def _ascending_positions(number: str) -> set[int]:
    positions: set[int] = set()
    for i, (current, following) in enumerate(zip(number, number[1:])):
        if current.isdigit() and following.isdigit() and int(following) == int(current) + 1:
            positions.update((i, i + 1))
    return positions


def highlight_number(number: str) -> Text:
    """Render a number with its ascending digit runs highlighted."""
    text = Text(number)
    for position in _ascending_positions(number):
        text.stylize(NICE_STYLE, position, position + 1)
    return text


def render_query_result(console: Console, result: QueryResult) -> None:
    if result.is_placeholder:
        console.print(Text(result.items[0], style="dim italic"))
        return

    table = Table(title="Numbers", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Number")
    table.add_column("Nice", justify="center")

    for index, item in enumerate(result.items, start=1):
        table.add_row(str(index), highlight_number(item), "✓" if is_nice_number(item) else "")

    console.print(table)
    pagination = result.pagination
    console.print(
        f"Page {pagination.current_page}/{pagination.total_pages} "
        f"({format_number(pagination.total_items)} items"
        f"{f', {pagination.page_size} per page' if pagination.page_size else ''})",
    )


def render_index_result(console: Console, result: IndexResult) -> None:
    data = result.data
    title = "Index (placeholder)" if result.is_placeholder else "Index"
    table = Table(title=title)
    table.add_column("Segment")
    table.add_column("Count", justify="right")

    counts = data.get("segmentCounts")
    if not isinstance(counts, dict):
        counts = {}
    for segment in result.segments:
        count = counts.get(segment)
        table.add_row(segment, format_number(to_count(count)) if count is not None else "-")

    console.print(table)
    console.print(
        f"Total: {format_number(result.total)}  "
        f"no-4: {format_number(to_count(data.get('no4Count')))}  "
        f"nice: {format_number(to_count(data.get('niceCount')))}",
    )
    if data.get("lastUpdated"):
        console.print(f"Last updated: {data['lastUpdated']}", style="dim")
