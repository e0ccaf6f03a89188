"""Render a record as a Discord message payload.

Produces one embed and one action row: a link button back to the tracker
page and a "Mark resolved" button whose ``custom_id`` is the action token.
"""

from __future__ import annotations

from ..interactions.tokens import ACTION_RESOLVE, encode_token
from ..sync.models import Record, RecordStatus

FOOTER = "Notion Issue Tracker"

# Discord limits
MAX_TITLE = 256
MAX_DESCRIPTION = 4096
MAX_FIELD_VALUE = 1024

# Component types / button styles
ACTION_ROW = 1
BUTTON = 2
STYLE_SUCCESS = 3
STYLE_LINK = 5

SEVERITY_COLOURS = {
    "critical": 0x992D22,
    "high": 0xE74C3C,
    "medium": 0xE67E22,
    "low": 0xF1C40F,
}
OPEN_COLOUR = 0x3498DB
RESOLVED_COLOUR = 0x2ECC71


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def embed_colour(record: Record) -> int:
    if record.status is RecordStatus.RESOLVED:
        return RESOLVED_COLOUR
    return SEVERITY_COLOURS.get(record.severity.casefold(), OPEN_COLOUR)


def render_record(record: Record, *, footer: str = FOOTER) -> dict:
    """Build the JSON body for ``POST``/``PATCH`` channel message calls."""
    fields = [
        {"name": "Status", "value": record.status.value.title(), "inline": True},
        {"name": "Severity", "value": record.severity or "Unspecified", "inline": True},
        {"name": "Project", "value": record.project or "None", "inline": True},
    ]
    if record.attachments:
        links = "\n".join(record.attachments)
        fields.append(
            {"name": "Attachments", "value": _truncate(links, MAX_FIELD_VALUE), "inline": False}
        )

    embed: dict = {
        "title": _truncate(f"[{record.label}] {record.title}", MAX_TITLE),
        "description": _truncate(record.description or "No description provided.", MAX_DESCRIPTION),
        "color": embed_colour(record),
        "fields": fields,
        "footer": {"text": footer},
    }
    if record.source_url:
        embed["url"] = record.source_url
    if record.last_edited:
        embed["timestamp"] = record.last_edited

    buttons: list[dict] = []
    if record.status is RecordStatus.OPEN:
        buttons.append(
            {
                "type": BUTTON,
                "style": STYLE_SUCCESS,
                "label": "Mark resolved",
                "custom_id": encode_token(ACTION_RESOLVE, record.id),
            }
        )
    if record.source_url:
        buttons.append(
            {
                "type": BUTTON,
                "style": STYLE_LINK,
                "label": "View in Notion",
                "url": record.source_url,
            }
        )

    return {
        "embeds": [embed],
        "components": [{"type": ACTION_ROW, "components": buttons}] if buttons else [],
    }
