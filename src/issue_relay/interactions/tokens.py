"""Action tokens carried in a message button's ``custom_id``.

Wire format: ``issue:<action>:<record_id>``. Discord caps ``custom_id`` at
100 characters; a Notion page id (36 chars with dashes) fits comfortably.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationError

PREFIX = "issue"
MAX_TOKEN_LENGTH = 100
ACTION_RESOLVE = "resolve"
SUPPORTED_ACTIONS = frozenset({ACTION_RESOLVE})


@dataclass(frozen=True)
class ActionToken:
    action: str
    record_id: str


def encode_token(action: str, record_id: str) -> str:
    """Build the ``custom_id`` for a button.

    Raises:
        ValidationError: Unknown action, empty id, or the token is too long.
    """
    if action not in SUPPORTED_ACTIONS:
        raise ValidationError(f"Unsupported action '{action}'")
    if not record_id:
        raise ValidationError("Record id must not be empty")
    token = f"{PREFIX}:{action}:{record_id}"
    if len(token) > MAX_TOKEN_LENGTH:
        raise ValidationError(
            f"Action token for record {record_id} exceeds {MAX_TOKEN_LENGTH} characters"
        )
    return token


def parse_token(token: str) -> ActionToken:
    """Parse a ``custom_id`` back into an action and record id.

    Raises:
        ValidationError: The token is malformed or names an unknown action.
    """
    if not token or len(token) > MAX_TOKEN_LENGTH:
        raise ValidationError(f"Malformed action token: {token!r}")
    prefix, sep, rest = token.partition(":")
    action, sep2, record_id = rest.partition(":")
    if prefix != PREFIX or not sep or not sep2 or not record_id:
        raise ValidationError(f"Malformed action token: {token!r}")
    if action not in SUPPORTED_ACTIONS:
        raise ValidationError(f"Unsupported action '{action}' in token")
    return ActionToken(action=action, record_id=record_id)
