"""Handle signed Discord interaction callbacks.

Flow for one callback:

1. Verify the Ed25519 signature over the raw body (401 on failure).
2. Parse the payload (400 when malformed).
3. ``PING`` -> ``{"type": 1}``.
4. ``MESSAGE_COMPONENT`` -> decode the button's action token, find the
   record's tracker connection in the cache, set the record resolved, log
   the outcome, and answer with an ephemeral message.

The handler never edits or deletes chat messages; the next reconciliation
pass sees the record leave the open set and removes its message.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.async_utils import call_with_timeout
from ..errors import AuthError, RelayError, ValidationError
from ..sync.models import (
    Operation,
    OperationLogEntry,
    OperationStatus,
    RecordStatus,
)
from ..sync.oplog import OperationLog
from ..sync.state import LocalCache
from ..tracker.base import TrackerAdapter
from .signature import verify_signature
from .tokens import parse_token

logger = logging.getLogger(__name__)

# Interaction types
PING = 1
MESSAGE_COMPONENT = 3

# Interaction callback types
PONG = 1
CHANNEL_MESSAGE_WITH_SOURCE = 4

EPHEMERAL = 1 << 6


# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------


class InteractionUser(BaseModel):
    id: str
    username: str = ""
    global_name: str | None = None


class InteractionMember(BaseModel):
    user: InteractionUser | None = None


class ComponentData(BaseModel):
    custom_id: str
    component_type: int | None = None


class InteractionPayload(BaseModel):
    """The subset of a Discord interaction the relay reads."""

    type: int
    id: str | None = None
    data: ComponentData | None = None
    member: InteractionMember | None = None
    user: InteractionUser | None = None
    channel_id: str | None = None

    @property
    def actor(self) -> str:
        user = self.user or (self.member.user if self.member else None)
        if user is None:
            return "unknown user"
        return user.global_name or user.username or user.id


@dataclass
class InteractionResponse:
    status_code: int
    payload: dict[str, Any] = field(default_factory=dict)


def _error(status_code: int, error_type: str, message: str) -> InteractionResponse:
    return InteractionResponse(status_code, {"error": error_type, "message": message})


def _ephemeral(content: str) -> InteractionResponse:
    return InteractionResponse(
        200,
        {
            "type": CHANNEL_MESSAGE_WITH_SOURCE,
            "data": {"content": content, "flags": EPHEMERAL},
        },
    )


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


class InteractionHandler:
    """Verify, decode and act on interaction callbacks.

    Args:
        cache: Used to find which tracker connection a record came from.
        oplog: Receives one ``interaction`` entry per component callback.
        tracker_for: Returns the adapter for a tracker connection id.
        public_key: Hex Ed25519 application key; None rejects every callback.
        call_timeout: Deadline for the tracker write.
    """

    def __init__(
        self,
        cache: LocalCache,
        oplog: OperationLog,
        tracker_for: Callable[[str], TrackerAdapter],
        public_key: str | None,
        *,
        call_timeout: float = 30.0,
    ) -> None:
        self.cache = cache
        self.oplog = oplog
        self._tracker_for = tracker_for
        self.public_key = public_key
        self.call_timeout = call_timeout

    async def handle(
        self, body: bytes, signature: str | None, timestamp: str | None
    ) -> InteractionResponse:
        try:
            verify_signature(self.public_key, signature, timestamp, body)
        except AuthError as e:
            logger.warning("Rejected interaction: %s", e)
            return _error(401, "unauthorized", str(e))

        try:
            payload = InteractionPayload.model_validate_json(body)
        except PydanticValidationError as e:
            logger.warning("Malformed interaction payload: %s", e.errors()[:1])
            return _error(400, "validation_error", "Malformed interaction payload")

        if payload.type == PING:
            return InteractionResponse(200, {"type": PONG})
        if payload.type == MESSAGE_COMPONENT:
            return await self._handle_component(payload)
        return _error(
            400, "validation_error", f"Unsupported interaction type {payload.type}"
        )

    async def _handle_component(self, payload: InteractionPayload) -> InteractionResponse:
        if payload.data is None:
            return _error(400, "validation_error", "Component interaction without data")
        try:
            token = parse_token(payload.data.custom_id)
        except ValidationError as e:
            logger.warning("Rejected component interaction: %s", e)
            return _error(400, "validation_error", str(e))

        record_id = token.record_id
        connections = self.cache.find_connections(record_id)
        if not connections:
            self._log(
                OperationStatus.ERROR,
                f"{payload.actor} tried to resolve unknown record {record_id}",
            )
            return _ephemeral("This issue is no longer tracked by the relay.")
        if len(connections) > 1:
            logger.warning(
                "Record %s cached under several connections %s; using %s",
                record_id,
                connections,
                connections[0],
            )
        connection_id = connections[0]
        cached = self.cache.get_record(connection_id, record_id)
        label = cached.label if cached else record_id

        # Only "resolve" survives parse_token today.
        try:
            tracker = self._tracker_for(connection_id)
            await call_with_timeout(
                tracker.update_status,
                record_id,
                RecordStatus.RESOLVED,
                timeout=self.call_timeout,
            )
        except RelayError as e:
            logger.error("Failed to resolve record %s: %s", record_id, e)
            self._log(
                OperationStatus.ERROR,
                f"{payload.actor} failed to resolve {label}",
                error_details=str(e),
            )
            return _ephemeral(f"Could not mark issue {label} as resolved: {e}")
        except Exception as e:
            logger.exception("Unexpected error resolving record %s", record_id)
            self._log(
                OperationStatus.ERROR,
                f"{payload.actor} failed to resolve {label}",
                error_details=str(e),
            )
            return _ephemeral(
                f"Could not mark issue {label} as resolved. Please try again later."
            )

        self._log(
            OperationStatus.SUCCESS,
            f"{payload.actor} marked {label} as resolved",
            records_affected=1,
        )
        return _ephemeral(
            f"Issue {label} marked as resolved. The message will be removed on the next sync."
        )

    def _log(
        self,
        status: OperationStatus,
        message: str,
        *,
        records_affected: int = 0,
        error_details: str | None = None,
    ) -> None:
        self.oplog.append(
            OperationLogEntry(
                mapping_id=None,
                operation=Operation.INTERACTION,
                status=status,
                message=message,
                records_affected=records_affected,
                error_details=error_details,
            )
        )
