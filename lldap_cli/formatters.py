"""Plain-text table rendering for command output."""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Sequence


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_table(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """Left-aligned columns joined by two spaces, with a dashed rule under the header."""
    cells = [[_cell(c) for c in row] for row in rows]
    widths = [
        max([len(h)] + [len(row[i]) for row in cells if i < len(row)])
        for i, h in enumerate(headers)
    ]

    def line(values: Sequence[str]) -> str:
        return "  ".join(
            (values[i] if i < len(values) else "").ljust(w) for i, w in enumerate(widths)
        )

    return "\n".join([line(headers), "  ".join("-" * w for w in widths)] + [line(r) for r in cells])


def format_users_table(users: List[Dict[str, Any]]) -> str:
    return format_table(
        ["User ID (user_id)", "Email (mail)", "Display Name (display_name)"],
        [(u.get("id"), u.get("email"), u.get("displayName")) for u in users],
    )


def format_users_compact_table(users: List[Dict[str, Any]]) -> str:
    return format_table(["User ID", "Email"], [(u.get("id"), u.get("email")) for u in users])


def format_groups_table(groups: List[Dict[str, Any]]) -> str:
    return format_table(
        ["Group ID", "Creation date", "UUID", "Display Name"],
        [(g.get("id"), g.get("creationDate"), g.get("uuid"), g.get("displayName")) for g in groups],
    )


def format_schema_attributes_table(attributes: List[Dict[str, Any]]) -> str:
    return format_table(
        ["Name", "Type", "Is list", "Is visible", "Is editable"],
        [
            (a.get("name"), a.get("attributeType"), a.get("isList"), a.get("isVisible"), a.get("isEditable"))
            for a in attributes
        ],
    )


def format_list(items: Iterable[Any]) -> str:
    """One item per line."""
    return "\n".join(_cell(i) for i in items)
