"""Mirror rows from the primary store into Airtable, one table mapping at a time.

A reconciliation pass for one mapping:

1. fetches source rows updated at or after the mapping's cursor (all rows
   when the cursor is ``None``);
2. walks them in batches of at most ``batch_size`` rows, one row at a time;
3. looks each row up in the destination by its identifying key field and
   updates the match in place or creates a new record.

The cursor is passed in and handed back in the :class:`SyncOutcome`; the
caller decides where it lives between passes. It only moves forward after a
pass that fetched and reconciled every row. Because rows are matched by key,
re-running a window is harmless.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

from app.services.airtable import MAX_RECORDS_PER_REQUEST
from app.services.errors import SyncError
from app.services.result import Err, Result

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SyncMapping:
    name: str
    source_table: str
    destination_table: str
    key_field: str
    fields: Tuple[str, ...]
    updated_at_field: str = "updated_at"


DEFAULT_MAPPINGS: Tuple[SyncMapping, ...] = (
    SyncMapping(
        name="payments",
        source_table="payments",
        destination_table="Payments",
        key_field="id",
        fields=(
            "id", "user_id", "submission_id", "amount", "currency",
            "order_id", "status", "created_at", "updated_at",
        ),
    ),
    SyncMapping(
        name="product_submissions",
        source_table="product_submissions",
        destination_table="Product Submissions",
        key_field="id",
        fields=(
            "id", "user_id", "product_name", "website_url", "email_user",
            "submission_plan", "price", "status", "categories", "features",
            "created_at", "updated_at",
        ),
    ),
)


@dataclass(frozen=True)
class SyncOutcome:
    mapping: str
    cursor: Optional[datetime]
    fetched: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class SyncSource(Protocol):
    async def fetch_rows(
        self,
        table: str,
        since: Optional[datetime] = None,
        updated_at_field: str = "updated_at",
        tiebreak_field: str = "id",
    ) -> Result[List[Dict[str, Any]]]: ...


class SyncDestination(Protocol):
    async def find_record(self, table: str, key_field: str, value: Any) -> Result[Optional[Dict[str, Any]]]: ...

    async def create_record(self, table: str, fields: Mapping[str, Any]) -> Result[Dict[str, Any]]: ...

    async def update_record(
        self, table: str, record_id: str, fields: Mapping[str, Any]
    ) -> Result[Dict[str, Any]]: ...


def serialize_value(value: Any) -> Any:
    """Flatten sequence and mapping values to JSON text; Airtable has no array type."""
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return value


def build_fields(row: Mapping[str, Any], mapping: SyncMapping) -> Dict[str, Any]:
    """Select the mirrored columns of *row* and serialize them for the destination."""
    return {
        field: serialize_value(row[field])
        for field in mapping.fields
        if field in row
    }


def batches(rows: Sequence[Dict[str, Any]], size: int) -> Iterator[Sequence[Dict[str, Any]]]:
    size = max(1, min(size, MAX_RECORDS_PER_REQUEST))
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


async def _reconcile_row(
    row: Mapping[str, Any],
    mapping: SyncMapping,
    destination: SyncDestination,
) -> str:
    """Create or update the destination record for *row*; return which one happened."""
    key = row[mapping.key_field]
    fields = build_fields(row, mapping)

    found = await destination.find_record(mapping.destination_table, mapping.key_field, key)
    if isinstance(found, Err):
        raise SyncError(mapping.name, key, RuntimeError(str(found)))

    if found.payload:
        result = await destination.update_record(
            mapping.destination_table, found.payload["id"], fields
        )
        action = "updated"
    else:
        result = await destination.create_record(mapping.destination_table, fields)
        action = "created"

    if isinstance(result, Err):
        raise SyncError(mapping.name, key, RuntimeError(str(result)))
    return action


async def reconcile(
    mapping: SyncMapping,
    cursor: Optional[datetime],
    *,
    source: SyncSource,
    destination: SyncDestination,
    clock: Clock = utc_now,
    batch_size: int = MAX_RECORDS_PER_REQUEST,
) -> SyncOutcome:
    """Run one reconciliation pass for *mapping* starting from *cursor*.

    A fetch failure is reported in the returned outcome with *cursor*
    unchanged. A per-row failure raises :class:`SyncError` and abandons the
    remaining rows; records already written in that pass stay written.
    """
    window_start = clock()
    fetched = await source.fetch_rows(
        mapping.source_table, cursor, mapping.updated_at_field, mapping.key_field
    )
    if isinstance(fetched, Err):
        logger.error("Sync %s: fetch failed, cursor kept at %s (%s)", mapping.name, cursor, fetched)
        return SyncOutcome(mapping=mapping.name, cursor=cursor, error=str(fetched))

    rows = fetched.payload
    logger.info("Sync %s: %d rows since %s", mapping.name, len(rows), cursor)

    counts = {"created": 0, "updated": 0, "skipped": 0}
    for batch in batches(rows, batch_size):
        for row in batch:
            if row.get(mapping.key_field) in (None, ""):
                logger.warning("Sync %s: row without %s skipped", mapping.name, mapping.key_field)
                counts["skipped"] += 1
                continue
            action = await _reconcile_row(row, mapping, destination)
            counts[action] += 1

    logger.info(
        "Sync %s: %d created, %d updated, %d skipped",
        mapping.name, counts["created"], counts["updated"], counts["skipped"],
    )
    return SyncOutcome(
        mapping=mapping.name,
        cursor=window_start,
        fetched=len(rows),
        **counts,
    )


async def reconcile_all(
    mappings: Sequence[SyncMapping],
    cursors: Mapping[str, Optional[datetime]],
    *,
    source: SyncSource,
    destination: SyncDestination,
    clock: Clock = utc_now,
    batch_size: int = MAX_RECORDS_PER_REQUEST,
) -> Tuple[Dict[str, Optional[datetime]], List[SyncOutcome]]:
    """Reconcile every mapping in turn and return the new cursors with each outcome.

    *cursors* is not modified. A mapping that fails keeps its previous cursor
    and does not stop the mappings after it.
    """
    new_cursors: Dict[str, Optional[datetime]] = dict(cursors)
    outcomes: List[SyncOutcome] = []

    for mapping in mappings:
        previous = cursors.get(mapping.name)
        try:
            outcome = await reconcile(
                mapping,
                previous,
                source=source,
                destination=destination,
                clock=clock,
                batch_size=batch_size,
            )
        except SyncError as exc:
            logger.error("Sync %s aborted: %s", mapping.name, exc)
            outcome = SyncOutcome(mapping=mapping.name, cursor=previous, error=str(exc))

        new_cursors[mapping.name] = outcome.cursor
        outcomes.append(outcome)

    return new_cursors, outcomes
