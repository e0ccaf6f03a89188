import pytest

from issue_relay.errors import (
    AuthError,
    NotFoundError,
    RelayError,
    TransientError,
    ValidationError,
)
from issue_relay.mcp.tools.errors import build_error_response, translate_relay_error


def test_build_error_response():
    result = build_error_response("not_found", "Mapping 'x' not found", "List mappings.")
    assert result.isError is True
    assert result.content[0].text == "Error (not_found): Mapping 'x' not found\n\nAction: List mappings."


@pytest.mark.parametrize(
    "error,error_type,hint",
    [
        (AuthError("401"), "auth_error", "API key"),
        (NotFoundError("gone"), "not_found", "ids"),
        (ValidationError("bad"), "validation_error", "schema"),
        (TransientError("503"), "transient_error", "retry later"),
        (RelayError("odd"), "server_error", "log file"),
    ],
)
def test_translate_relay_error(error, error_type, hint):
    text = translate_relay_error(error).content[0].text
    assert text.startswith(f"Error ({error_type}): {error}")
    assert hint in text


def test_retry_after_appended():
    text = translate_relay_error(TransientError("rate limited", retry_after=2.4)).content[0].text
    assert "rate limited (retry after 2s)" in text
