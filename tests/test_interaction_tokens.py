import pytest

from issue_relay.errors import ValidationError
from issue_relay.interactions.tokens import (
    ACTION_RESOLVE,
    MAX_TOKEN_LENGTH,
    ActionToken,
    encode_token,
    parse_token,
)

PAGE_ID = "0f1e2d3c-4b5a-6978-8796-a5b4c3d2e1f0"


def test_encode_resolve():
    assert encode_token(ACTION_RESOLVE, PAGE_ID) == f"issue:resolve:{PAGE_ID}"


def test_parse_resolve():
    assert parse_token(f"issue:resolve:{PAGE_ID}") == ActionToken("resolve", PAGE_ID)


def test_record_id_may_contain_colons():
    assert parse_token("issue:resolve:a:b").record_id == "a:b"


@pytest.mark.parametrize(
    "token",
    [
        "",
        "issue",
        "issue:resolve",
        "issue:resolve:",
        "ticket:resolve:abc",
        "issue:reopen:abc",
        "issue:resolve:" + "x" * MAX_TOKEN_LENGTH,
    ],
)
def test_parse_rejects(token):
    with pytest.raises(ValidationError):
        parse_token(token)


def test_encode_rejects_unknown_action():
    with pytest.raises(ValidationError, match="Unsupported action"):
        encode_token("delete", PAGE_ID)


def test_encode_rejects_empty_id():
    with pytest.raises(ValidationError):
        encode_token(ACTION_RESOLVE, "")


def test_encode_rejects_oversized_id():
    with pytest.raises(ValidationError, match="exceeds"):
        encode_token(ACTION_RESOLVE, "x" * MAX_TOKEN_LENGTH)
