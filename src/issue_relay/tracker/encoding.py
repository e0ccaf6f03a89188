"""Status-property encodings and Notion property readers.

A Notion database can model "open/resolved" several ways. The encoding is
resolved once from the database schema and then drives the server-side
query filter, reading a page's status, and writing a new status.

=============  =======================  ==============================
Kind           Open when                Write
=============  =======================  ==============================
status         name == open value       ``{"status": {"name": v}}``
select         name == open value       ``{"select": {"name": v}}``
multi_select   contains open value      ``{"multi_select": [{"name": v}]}``
checkbox       checked                  ``{"checkbox": open}``
formula        value == open / true     read-only
=============  =======================  ==============================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import ValidationError
from ..sync.models import RecordStatus


class StatusKind(str, Enum):
    STATUS = "status"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    CHECKBOX = "checkbox"
    FORMULA = "formula"


@dataclass(frozen=True)
class StatusEncoding:
    kind: StatusKind
    property_name: str
    open_value: str = "open"
    resolved_value: str = "resolved"

    @property
    def writable(self) -> bool:
        return self.kind is not StatusKind.FORMULA

    def query_filter(self) -> dict | None:
        """Server-side filter selecting open pages, or None to filter locally."""
        prop = self.property_name
        match self.kind:
            case StatusKind.STATUS:
                return {"property": prop, "status": {"equals": self.open_value}}
            case StatusKind.SELECT:
                return {"property": prop, "select": {"equals": self.open_value}}
            case StatusKind.MULTI_SELECT:
                return {
                    "property": prop,
                    "multi_select": {"contains": self.open_value},
                }
            case StatusKind.CHECKBOX:
                return {"property": prop, "checkbox": {"equals": True}}
            case _:
                return None

    def read(self, prop: dict | None) -> RecordStatus:
        """Normalize a page's status property value."""
        if not prop:
            return RecordStatus.RESOLVED
        is_open = False
        match self.kind:
            case StatusKind.STATUS | StatusKind.SELECT:
                is_open = self._is_open_name(select_name(prop))
            case StatusKind.MULTI_SELECT:
                is_open = any(
                    self._is_open_name(opt.get("name"))
                    for opt in prop.get("multi_select") or []
                )
            case StatusKind.CHECKBOX:
                is_open = bool(prop.get("checkbox"))
            case StatusKind.FORMULA:
                formula = prop.get("formula") or {}
                value = formula.get(formula.get("type", ""))
                if isinstance(value, bool):
                    is_open = value
                elif isinstance(value, str):
                    is_open = self._is_open_name(value)
        return RecordStatus.OPEN if is_open else RecordStatus.RESOLVED

    def write(self, status: RecordStatus) -> dict:
        """Build the ``properties`` payload that sets *status*.

        Raises:
            ValidationError: The property is computed and cannot be written.
        """
        value = self.open_value if status is RecordStatus.OPEN else self.resolved_value
        prop = self.property_name
        match self.kind:
            case StatusKind.STATUS:
                return {prop: {"status": {"name": value}}}
            case StatusKind.SELECT:
                return {prop: {"select": {"name": value}}}
            case StatusKind.MULTI_SELECT:
                return {prop: {"multi_select": [{"name": value}]}}
            case StatusKind.CHECKBOX:
                return {prop: {"checkbox": status is RecordStatus.OPEN}}
            case _:
                raise ValidationError(
                    f"Status property '{prop}' is a formula and cannot be updated"
                )

    def _is_open_name(self, name: str | None) -> bool:
        return bool(name) and name.casefold() == self.open_value.casefold()


def resolve_encoding(
    schema: dict,
    property_name: str,
    open_value: str = "open",
    resolved_value: str = "resolved",
) -> StatusEncoding:
    """Pick the encoding from a ``GET /databases/{id}`` response.

    Raises:
        ValidationError: The status property is missing or of an
            unsupported type.
    """
    properties = schema.get("properties") or {}
    prop = properties.get(property_name)
    if prop is None:
        raise ValidationError(
            f"Database has no '{property_name}' property "
            f"(found: {sorted(properties)})"
        )
    prop_type = prop.get("type")
    try:
        kind = StatusKind(prop_type)
    except ValueError:
        raise ValidationError(
            f"Property '{property_name}' has unsupported type '{prop_type}'"
        ) from None
    return StatusEncoding(kind, property_name, open_value, resolved_value)


# ---------------------------------------------------------------------------
# Plain property readers
# ---------------------------------------------------------------------------


def plain_text(prop: dict | None) -> str:
    """Text of a title, rich_text, select, number, date, people or url property."""
    if not prop:
        return ""
    prop_type = prop.get("type")
    match prop_type:
        case "title" | "rich_text":
            return "".join(
                part.get("plain_text", "") for part in prop.get(prop_type) or []
            ).strip()
        case "select" | "status":
            return select_name(prop) or ""
        case "multi_select":
            return ", ".join(
                opt.get("name", "") for opt in prop.get("multi_select") or []
            )
        case "number":
            value = prop.get("number")
            return "" if value is None else str(value)
        case "url" | "email" | "phone_number":
            return prop.get(prop_type) or ""
        case "date":
            date = prop.get("date") or {}
            start, end = date.get("start") or "", date.get("end")
            return f"{start} - {end}" if start and end else start
        case "people":
            return ", ".join(
                person.get("name") or "" for person in prop.get("people") or []
            )
        case "unique_id":
            uid = prop.get("unique_id") or {}
            if uid.get("number") is None:
                return ""
            prefix = uid.get("prefix")
            return f"{prefix}-{uid['number']}" if prefix else str(uid["number"])
        case _:
            return ""


def select_name(prop: dict) -> str | None:
    option = prop.get(prop.get("type", "")) or {}
    if isinstance(option, dict):
        return option.get("name")
    return None


def file_urls(prop: dict | None) -> list[str]:
    """URLs of a ``files`` property (external links and Notion-hosted files)."""
    if not prop:
        return []
    urls: list[str] = []
    for item in prop.get("files") or []:
        holder: Any = item.get(item.get("type", "")) or {}
        url = holder.get("url") if isinstance(holder, dict) else None
        if url:
            urls.append(url)
    return urls
