"""
Pattern exporter.

Renders patterns into external formats:
- json:     lossless structured data (re-importable with patterns_from_json)
- csv:      flattened rows with RFC 4180 quoting
- markdown: human-readable document grouped by category, critical first
- context:  compact document ordered for downstream context generation

Rendering is pure: patterns are never mutated here. Recording "exported"
usage events is the caller's job.
"""

import csv
import io
import json
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from pattern_tracker.patterns.schemas import CRITICAL_CATEGORIES, Pattern
from pattern_tracker.sources.schemas import Source

EXPORT_FORMATS: frozenset[str] = frozenset({"json", "csv", "markdown", "context"})

# Category order for human and context documents
CRITICAL_ORDER = ("BREAKING_CHANGE", "API_CHANGE")
PRACTICE_ORDER = ("BEST_PRACTICE", "WARNING", "SECURITY", "PERFORMANCE")
LEARNING_ORDER = ("CONCEPT", "EXAMPLE")

CSV_COLUMNS = [
    "id",
    "name",
    "description",
    "category",
    "confidence",
    "relevance",
    "status",
    "source_id",
    "source_name",
    "source_url",
    "update_id",
    "tags",
    "extracted_at",
    "approved_at",
    "approved_by",
    "usage_count",
]

_DATETIME_FIELDS = ("extracted_at", "approved_at", "last_used_at")


def _heading(category: str) -> str:
    return category.replace("_", " ")


def _group(patterns: Iterable[Pattern]) -> dict[str, list[Pattern]]:
    grouped: dict[str, list[Pattern]] = defaultdict(list)
    for p in patterns:
        grouped[p.category].append(p)
    return grouped


def _source_fields(p: Pattern, sources: Mapping[str, Source]) -> tuple[str, str]:
    source = sources.get(p.source_id)
    if source is None:
        return "", ""
    return source.name, source.url


def render_json(
    patterns: list[Pattern],
    sources: Mapping[str, Source],
    generated_at: datetime,
) -> str:
    items = []
    for p in patterns:
        item = p.to_dict()
        name, url = _source_fields(p, sources)
        item["source"] = {"name": name, "url": url}
        items.append(item)
    return json.dumps(
        {
            "exported_at": generated_at.isoformat(),
            "count": len(items),
            "patterns": items,
        },
        indent=2,
        ensure_ascii=False,
    )


def render_csv(patterns: list[Pattern], sources: Mapping[str, Source]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(CSV_COLUMNS)
    for p in patterns:
        name, url = _source_fields(p, sources)
        writer.writerow([
            p.id,
            p.name,
            p.description,
            p.category,
            f"{p.confidence:.2f}",
            f"{p.relevance:.2f}",
            p.status,
            p.source_id,
            name,
            url,
            p.update_id or "",
            ";".join(p.tags),
            p.extracted_at.isoformat() if p.extracted_at else "",
            p.approved_at.isoformat() if p.approved_at else "",
            p.approved_by or "",
            p.usage_count,
        ])
    return buffer.getvalue()


def render_markdown(
    patterns: list[Pattern],
    sources: Mapping[str, Source],
    generated_at: datetime,
) -> str:
    grouped = _group(patterns)
    critical = [c for c in CRITICAL_ORDER if c in grouped]
    rest = sorted(c for c in grouped if c not in CRITICAL_CATEGORIES)

    lines = [
        "# Extracted Patterns Export",
        "",
        f"**Export Date:** {generated_at.isoformat()}",
        f"**Total Patterns:** {len(patterns)}",
        "",
    ]
    for category in critical + rest:
        suffix = " (CRITICAL)" if category in CRITICAL_CATEGORIES else ""
        lines += [f"## {_heading(category)}{suffix}", ""]
        for p in grouped[category]:
            lines += [f"### {p.name}", ""]
            if p.description:
                lines += [p.description, ""]
            name, url = _source_fields(p, sources)
            if name:
                lines.append(f"- **Source:** [{name}]({url})")
            lines.append(f"- **Confidence:** {p.confidence * 100:.0f}%")
            lines.append(f"- **Relevance:** {p.relevance * 100:.0f}%")
            if p.examples:
                lines += ["", "**Examples:**"]
                for example in p.examples:
                    lines += ["```", example, "```"]
            if p.tags:
                lines += ["", f"**Tags:** {', '.join(p.tags)}"]
            lines += ["", "---", ""]
    return "\n".join(lines)


def render_context(patterns: list[Pattern], generated_at: datetime) -> str:
    grouped = _group(patterns)
    lines = [
        "# Knowledge Base Patterns",
        "",
        f"This document contains {len(patterns)} verified patterns "
        "extracted from trusted sources.",
        "",
    ]

    def bullet(p: Pattern, with_example: bool) -> None:
        text = f"- {p.name}"
        if p.description:
            text += f": {p.description}"
        lines.append(text)
        if with_example and p.examples:
            lines.append(f"  Example: {p.examples[0]}")

    for category in CRITICAL_ORDER:
        if category in grouped:
            lines += [f"## {_heading(category)} (CRITICAL)", ""]
            for p in grouped[category]:
                bullet(p, with_example=False)
            lines.append("")

    for category in PRACTICE_ORDER:
        if category in grouped:
            lines += [f"## {_heading(category)}", ""]
            for p in grouped[category]:
                bullet(p, with_example=True)
            lines.append("")

    for category in LEARNING_ORDER:
        if category in grouped:
            lines += [f"## {_heading(category)}", ""]
            for p in grouped[category]:
                lines.append(f"### {p.name}")
                if p.description:
                    lines.append(p.description)
                if p.examples:
                    lines += ["", "Example:", "```", p.examples[0], "```"]
                lines.append("")

    if "OTHER" in grouped:
        lines += ["## Additional Patterns", ""]
        for p in grouped["OTHER"]:
            bullet(p, with_example=False)
        lines.append("")

    lines += ["---", f"Generated on {generated_at.isoformat()}"]
    return "\n".join(lines) + "\n"


def render(
    patterns: list[Pattern],
    fmt: str,
    sources: Mapping[str, Source] | None = None,
    generated_at: datetime | None = None,
) -> str:
    """Render patterns in one of EXPORT_FORMATS.

    Args:
        patterns: Patterns to include, already filtered and ordered.
        fmt: json, csv, markdown or context.
        sources: Source lookup by id, used for names and URLs.
        generated_at: Timestamp printed in the document (default: now).

    Raises:
        ValueError: Unknown format.
    """
    fmt = (fmt or "").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(
            f"Invalid export format {fmt!r}. Must be one of: {sorted(EXPORT_FORMATS)}"
        )
    sources = sources or {}
    generated_at = generated_at or datetime.now(timezone.utc)

    if fmt == "json":
        return render_json(patterns, sources, generated_at)
    if fmt == "csv":
        return render_csv(patterns, sources)
    if fmt == "markdown":
        return render_markdown(patterns, sources, generated_at)
    return render_context(patterns, generated_at)


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def patterns_from_json(document: str) -> list[Pattern]:
    """Rebuild patterns from a json export."""
    data = json.loads(document)
    items = data["patterns"] if isinstance(data, dict) else data
    patterns = []
    for item in items:
        fields = {
            key: item[key]
            for key in (
                "id", "source_id", "update_id", "name", "description", "category",
                "confidence", "relevance", "status", "metadata", "extracted_by",
                "approved_by", "usage_count",
            )
            if key in item
        }
        for key in _DATETIME_FIELDS:
            if key in item:
                fields[key] = _parse_datetime(item[key])
        if fields.get("extracted_at") is None:
            fields.pop("extracted_at", None)
        patterns.append(Pattern(**fields))
    return patterns
