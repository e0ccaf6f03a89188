"""Reconciliation engine: make a channel mirror a tracker's open records.

One mapping run:

1. Fetches the open records of the mapping's tracker connection.
2. Keeps those matching the mapping's project filter (the desired set).
3. Diffs the desired set against the records this mapping has delivered
   (its cached set) into creates, updates and removals.
4. Applies the three phases in that order. Within a phase records are
   processed concurrently, bounded by the engine's semaphore, and each
   record's failure is isolated from the others.
5. Records ``last_sync_at`` and appends a summary to the operation log.

A fetch failure aborts only that mapping. A full run walks every active
mapping in turn and never aborts on one mapping's failure.

The cache is written right after each remote effect succeeds, so a crash
mid-run leaves at most one record's state stale; the next pass converges.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..channel.base import ChannelAdapter, ChannelFactory
from ..config_schema import MappingConfig, UnifiedConfig
from ..core.async_utils import call_with_timeout
from ..errors import NotFoundError, ValidationError
from ..tracker.base import TrackerAdapter, TrackerFactory
from .models import (
    DeliveryLink,
    Operation,
    OperationLogEntry,
    OperationStatus,
    Record,
    RecordResult,
    SyncAction,
    SyncResult,
    utc_now,
)
from .oplog import OperationLog
from .state import LocalCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ACTION_OPERATION = {
    SyncAction.CREATE: Operation.CREATE,
    SyncAction.UPDATE: Operation.UPDATE,
    SyncAction.REPOST: Operation.UPDATE,
    SyncAction.DELETE: Operation.DELETE,
}


@dataclass
class _MappingRun:
    """Per-run context handed to the record operations."""

    mapping: MappingConfig
    connection_id: str
    channel_id: str
    channel: ChannelAdapter

    @property
    def mapping_id(self) -> str:
        return self.mapping.id


@dataclass
class _Outcome:
    result: RecordResult
    warning: str | None = None


class ReconciliationEngine:
    """Orchestrates mapping runs.

    Args:
        config: Trackers, channels and mappings.
        cache: Local cache of delivered records and links.
        oplog: Operation log receiving failures and summaries.
        tracker_factory: Builds a ``TrackerAdapter`` for a connection.
        channel_factory: Builds a ``ChannelAdapter`` for a channel.
        max_concurrency: Adapter calls in flight at once.
        call_timeout: Deadline in seconds for each adapter call.
    """

    def __init__(
        self,
        config: UnifiedConfig,
        cache: LocalCache,
        oplog: OperationLog,
        tracker_factory: TrackerFactory,
        channel_factory: ChannelFactory,
        *,
        max_concurrency: int = 4,
        call_timeout: float = 30.0,
    ) -> None:
        self.config = config
        self.cache = cache
        self.oplog = oplog
        self._tracker_factory = tracker_factory
        self._channel_factory = channel_factory
        self.call_timeout = call_timeout
        self._semaphore = asyncio.Semaphore(max_concurrency)
        # Entries vanish once no run holds or awaits the lock.
        self._record_locks: weakref.WeakValueDictionary[
            tuple[str, str, str], asyncio.Lock
        ] = weakref.WeakValueDictionary()
        self._trackers: dict[str, TrackerAdapter] = {}
        self._channels: dict[str, ChannelAdapter] = {}

    # ------------------------------------------------------------------
    # Adapters
    # ------------------------------------------------------------------

    def tracker_for(self, tracker_id: str) -> TrackerAdapter:
        """Return the (cached) adapter for a tracker connection."""
        if tracker_id not in self._trackers:
            connection = self.config.get_tracker(tracker_id)
            if connection is None:
                raise ValidationError(f"Unknown tracker connection '{tracker_id}'")
            self._trackers[tracker_id] = self._tracker_factory(connection)
        return self._trackers[tracker_id]

    def channel_for(self, channel_id: str) -> ChannelAdapter:
        """Return the (cached) adapter for a channel."""
        if channel_id not in self._channels:
            channel = self.config.get_channel(channel_id)
            if channel is None:
                raise ValidationError(f"Unknown channel '{channel_id}'")
            self._channels[channel_id] = self._channel_factory(channel)
        return self._channels[channel_id]

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        return await call_with_timeout(
            func, *args, timeout=self.call_timeout, semaphore=self._semaphore
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_mapping(self, mapping_id: str) -> SyncResult:
        """Reconcile one mapping.

        Raises:
            ValidationError: *mapping_id* is not configured.
        """
        mapping = self.config.get_mapping(mapping_id)
        if mapping is None:
            raise ValidationError(f"Unknown mapping '{mapping_id}'")
        if not self.config.is_runnable(mapping):
            message = f"Mapping '{mapping_id}' or one of its endpoints is inactive; skipped"
            logger.info(message)
            now = utc_now()
            return SyncResult(
                mapping_id=mapping_id,
                warnings=[message],
                started_at=now,
                completed_at=now,
            )
        return await self._run_mapping(mapping)

    async def run_full(self) -> SyncResult:
        """Reconcile every active mapping, one after another."""
        total = SyncResult(mapping_id=None)
        mappings = self.config.active_mappings()
        logger.info("Full sync starting: %d active mappings", len(mappings))

        for mapping in mappings:
            try:
                result = await self._run_mapping(mapping)
            except Exception as e:
                logger.exception("Unexpected failure syncing mapping %s", mapping.id)
                result = SyncResult(
                    success=False,
                    mapping_id=mapping.id,
                    errors=[f"Mapping '{mapping.id}': {e}"],
                )
            total = total.merge(result)

        total = total.model_copy(update={"completed_at": utc_now()})
        self.oplog.append(
            OperationLogEntry(
                mapping_id=None,
                operation=Operation.FULL_SYNC,
                status=OperationStatus.SUCCESS if total.success else OperationStatus.ERROR,
                message=(
                    f"Full sync of {len(mappings)} mappings: "
                    f"{total.issues_processed} processed, {len(total.errors)} errors"
                ),
                records_affected=total.issues_processed,
                error_details="; ".join(total.errors) or None,
            )
        )
        logger.info(total.summary())
        return total

    # ------------------------------------------------------------------
    # One mapping
    # ------------------------------------------------------------------

    async def _run_mapping(self, mapping: MappingConfig) -> SyncResult:
        started_at = utc_now()
        tracker = self.tracker_for(mapping.tracker)
        run = _MappingRun(
            mapping=mapping,
            connection_id=mapping.tracker,
            channel_id=mapping.channel,
            channel=self.channel_for(mapping.channel),
        )

        try:
            fetched = await self._call(tracker.fetch_open_records)
        except Exception as e:
            message = f"Failed to fetch records for mapping '{mapping.id}': {e}"
            logger.error(message)
            self.oplog.append(
                OperationLogEntry(
                    mapping_id=mapping.id,
                    operation=Operation.FETCH,
                    status=OperationStatus.ERROR,
                    message=message,
                    error_details=str(e),
                )
            )
            return SyncResult(
                success=False,
                mapping_id=mapping.id,
                errors=[message],
                started_at=started_at,
                completed_at=utc_now(),
            )

        desired = {r.id: r for r in fetched if mapping.accepts(r.project)}
        cached = self.cache.cached_records(run.connection_id, mapping.id)

        to_create = [r for rid, r in desired.items() if rid not in cached]
        to_update = [r for rid, r in desired.items() if rid in cached]
        to_remove = [rid for rid in cached if rid not in desired]
        logger.info(
            "Mapping %s: %d fetched, %d desired, %d to create, %d to update, %d to remove",
            mapping.id,
            len(fetched),
            len(desired),
            len(to_create),
            len(to_update),
            len(to_remove),
        )

        outcomes: list[_Outcome] = []
        outcomes += await self._phase(
            run, SyncAction.CREATE, to_create, lambda r: self._create(run, r)
        )
        outcomes += await self._phase(
            run, SyncAction.UPDATE, to_update, lambda r: self._update(run, r)
        )
        outcomes += await self._phase(
            run, SyncAction.DELETE, to_remove, lambda rid: self._remove(run, rid)
        )

        results = [o.result for o in outcomes]
        errors = [
            f"{r.action.value} {r.record_id}: {r.error}" for r in results if not r.success
        ]
        completed_at = utc_now()
        result = SyncResult(
            success=not errors,
            issues_processed=sum(
                1 for r in results if r.success and r.action is not SyncAction.SKIP
            ),
            errors=errors,
            warnings=[o.warning for o in outcomes if o.warning],
            mapping_id=mapping.id,
            started_at=started_at,
            completed_at=completed_at,
            results=results,
        )

        self.cache.set_last_sync(mapping.id, completed_at)
        self.oplog.append(
            OperationLogEntry(
                mapping_id=mapping.id,
                operation=Operation.SYNC,
                status=OperationStatus.SUCCESS if result.success else OperationStatus.ERROR,
                message=result.summary(),
                records_affected=result.issues_processed,
                error_details="; ".join(errors) or None,
            )
        )
        logger.info(result.summary())
        return result

    async def _phase(
        self,
        run: _MappingRun,
        action: SyncAction,
        items: list,
        operation: Callable[[Any], Awaitable[_Outcome]],
    ) -> list[_Outcome]:
        """Run *operation* over *items* concurrently, isolating failures."""

        async def guarded(item: Record | str) -> _Outcome:
            record_id = item.id if isinstance(item, Record) else item
            async with self._lock_for(run, record_id):
                try:
                    return await operation(item)
                except Exception as e:
                    logger.error(
                        "Mapping %s: %s of record %s failed: %s",
                        run.mapping_id,
                        action.value,
                        record_id,
                        e,
                    )
                    self.oplog.append(
                        OperationLogEntry(
                            mapping_id=run.mapping_id,
                            operation=_ACTION_OPERATION[action],
                            status=OperationStatus.ERROR,
                            message=f"Failed to {action.value} record {record_id}",
                            error_details=str(e),
                        )
                    )
                    return _Outcome(
                        RecordResult(
                            record_id=record_id,
                            action=action,
                            success=False,
                            error=str(e),
                        )
                    )

        if not items:
            return []
        return list(await asyncio.gather(*(guarded(item) for item in items)))

    def _lock_for(self, run: _MappingRun, record_id: str) -> asyncio.Lock:
        # Keyed on the link identity so sibling mappings sharing a channel
        # also serialize on the record.
        key = (run.connection_id, run.channel_id, record_id)
        lock = self._record_locks.get(key)
        if lock is None:
            lock = self._record_locks[key] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Record operations (called with the record lock held)
    # ------------------------------------------------------------------

    async def _post(self, run: _MappingRun, record: Record) -> DeliveryLink:
        message_id = await self._call(run.channel.post, record)
        link = DeliveryLink(
            connection_id=run.connection_id,
            channel_id=run.channel_id,
            record_id=record.id,
            message_id=message_id,
        )
        self.cache.put_link(link)
        self.cache.store(run.connection_id, run.mapping_id, run.channel_id, record)
        return link

    async def _create(self, run: _MappingRun, record: Record) -> _Outcome:
        if self.cache.get_link(run.connection_id, run.channel_id, record.id) is not None:
            # Already delivered by an overlapping run or a sibling mapping.
            logger.debug("Record %s already linked, updating instead", record.id)
            return await self._update(run, record)
        await self._post(run, record)
        return _Outcome(RecordResult(record_id=record.id, action=SyncAction.CREATE, success=True))

    async def _update(self, run: _MappingRun, record: Record) -> _Outcome:
        link = self.cache.get_link(run.connection_id, run.channel_id, record.id)
        if link is None:
            await self._post(run, record)
            return _Outcome(
                RecordResult(record_id=record.id, action=SyncAction.CREATE, success=True)
            )

        try:
            await self._call(run.channel.update, link.message_id, record)
        except NotFoundError:
            await self._post(run, record)
            warning = (
                f"Message {link.message_id} for record {record.id} was missing "
                f"from channel '{run.channel_id}'; reposted"
            )
            logger.warning(warning)
            return _Outcome(
                RecordResult(record_id=record.id, action=SyncAction.REPOST, success=True),
                warning=warning,
            )

        self.cache.store(run.connection_id, run.mapping_id, run.channel_id, record)
        return _Outcome(RecordResult(record_id=record.id, action=SyncAction.UPDATE, success=True))

    async def _remove(self, run: _MappingRun, record_id: str) -> _Outcome:
        # Claims held by mappings that never run (inactive, or dropped from
        # the config) must not pin the message.
        siblings = [
            m
            for m in self.cache.other_claimants(
                run.connection_id, run.mapping_id, record_id, channel_id=run.channel_id
            )
            if self._is_live(m)
        ]
        if siblings:
            self.cache.release(run.connection_id, run.mapping_id, record_id)
            logger.info(
                "Record %s still delivered to channel %s by %s; message kept",
                record_id,
                run.channel_id,
                ", ".join(siblings),
            )
            return _Outcome(
                RecordResult(record_id=record_id, action=SyncAction.SKIP, success=True)
            )

        link = self.cache.get_link(run.connection_id, run.channel_id, record_id)
        if link is not None:
            try:
                await self._call(run.channel.delete, link.message_id)
            except NotFoundError:
                logger.info(
                    "Message %s for record %s already deleted", link.message_id, record_id
                )
            self.cache.delete_link(run.connection_id, run.channel_id, record_id)
        self.cache.release(run.connection_id, run.mapping_id, record_id)
        return _Outcome(RecordResult(record_id=record_id, action=SyncAction.DELETE, success=True))

    def _is_live(self, mapping_id: str) -> bool:
        mapping = self.config.get_mapping(mapping_id)
        return mapping is not None and self.config.is_runnable(mapping)
