from fakes import make_record
from issue_relay.channel.render import (
    FOOTER,
    OPEN_COLOUR,
    RESOLVED_COLOUR,
    SEVERITY_COLOURS,
    render_record,
)
from issue_relay.interactions.tokens import parse_token
from issue_relay.sync.models import RecordStatus


def test_embed_fields():
    record = make_record("p1", display_id="BUG-3", severity="High", project="core")
    payload = render_record(record)
    embed = payload["embeds"][0]

    assert embed["title"] == "[BUG-3] Bug p1"
    assert embed["description"] == "Description of p1"
    assert embed["color"] == SEVERITY_COLOURS["high"]
    assert embed["footer"] == {"text": FOOTER}
    assert embed["url"] == "https://www.notion.so/p1"
    names = [f["name"] for f in embed["fields"]]
    assert names == ["Status", "Severity", "Project"]


def test_resolve_button_carries_token():
    payload = render_record(make_record("p1"))
    buttons = payload["components"][0]["components"]

    resolve = buttons[0]
    assert resolve["label"] == "Mark resolved"
    token = parse_token(resolve["custom_id"])
    assert token.record_id == "p1"
    assert buttons[1]["url"] == "https://www.notion.so/p1"


def test_resolved_record_has_no_resolve_button():
    payload = render_record(make_record("p1", status=RecordStatus.RESOLVED))
    buttons = payload["components"][0]["components"]
    assert [b["label"] for b in buttons] == ["View in Notion"]
    assert payload["embeds"][0]["color"] == RESOLVED_COLOUR


def test_unknown_severity_and_empty_fields():
    record = make_record("p1", severity="", project="", description="", source_url="")
    payload = render_record(record)
    embed = payload["embeds"][0]

    assert embed["color"] == OPEN_COLOUR
    assert "url" not in embed
    assert embed["description"] == "No description provided."
    assert embed["fields"][1]["value"] == "Unspecified"


def test_attachments_field():
    record = make_record("p1", attachments=["https://x/a.png", "https://x/b.log"])
    fields = render_record(record)["embeds"][0]["fields"]
    assert fields[-1] == {
        "name": "Attachments",
        "value": "https://x/a.png\nhttps://x/b.log",
        "inline": False,
    }


def test_long_title_truncated():
    record = make_record("p1", title="x" * 400)
    title = render_record(record)["embeds"][0]["title"]
    assert len(title) == 256
    assert title.endswith("…")


def test_custom_footer():
    payload = render_record(make_record("p1"), footer="Ops tracker")
    assert payload["embeds"][0]["footer"] == {"text": "Ops tracker"}
