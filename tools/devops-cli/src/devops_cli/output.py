"""Output formatting: TSV (default), tabulate tables, or JSON."""

import json
from typing import Any, List, Optional, Sequence

from tabulate import tabulate

FORMATS = ["tsv", "table", "json"]

NO_ITEMS = "No work items found."


def output_format(args) -> str:
    if getattr(args, "json", False):
        return "json"
    return getattr(args, "format", None) or "tsv"


def format_json(data: Any) -> str:
    return json.dumps(data, indent=2)


def format_rows(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    fmt: str = "tsv",
    footer: Optional[str] = None,
) -> str:
    if fmt == "table":
        lines = [tabulate(rows, headers=list(headers), tablefmt="simple")]
    else:
        lines = ["\t".join(headers)]
        lines.extend("\t".join(str(v) for v in row) for row in rows)
    if footer:
        lines.append("")
        lines.append(footer)
    return "\n".join(lines)


def format_empty(fmt: str) -> str:
    return "[]" if fmt == "json" else NO_ITEMS


def format_pairs(pairs: List[Sequence[Any]], fmt: str = "tsv") -> str:
    """Key/value (or wider) records without a header."""
    if fmt == "table":
        return tabulate(pairs, tablefmt="plain")
    return "\n".join("\t".join(str(v) for v in pair) for pair in pairs)


def item_count(n: int) -> str:
    return f"{n} item(s)"
