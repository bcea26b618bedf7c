from __future__ import annotations

import json
from typing import Any

from ..errors import ErrorCode, NotFoundError, SlotWriteConflict
from .types import SlotRecord, SlotStatus, SlotType, SlotVersion

_SLOT_COLUMNS = "entity_id, slot_type, title, status, content, version, error_message, updated_at"


class SlotStore:
    def __init__(self, *, pool) -> None:
        self._pool = pool

    async def get(self, entity_id: str, slot_type: SlotType) -> SlotRecord | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_SLOT_COLUMNS} FROM strategy.slots WHERE entity_id=$1 AND slot_type=$2;",
                entity_id,
                SlotType(slot_type).value,
            )
        return _slot_from_row(row) if row else None

    async def list_for_entity(self, entity_id: str) -> list[SlotRecord]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_SLOT_COLUMNS} FROM strategy.slots WHERE entity_id=$1;",
                entity_id,
            )
        order = list(SlotType)
        records = [_slot_from_row(row) for row in rows]
        return sorted(records, key=lambda record: order.index(record.slot_type))

    async def write_content(
        self,
        entity_id: str,
        slot_type: SlotType,
        content: Any,
        *,
        expected_version: int | None,
        status: SlotStatus = SlotStatus.COMPLETE,
        user_id: str | None = None,
        change_note: str | None = None,
    ) -> SlotRecord:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                return await write_slot_content(
                    conn,
                    entity_id=entity_id,
                    slot_type=slot_type,
                    content=content,
                    expected_version=expected_version,
                    status=status,
                    user_id=user_id,
                    change_note=change_note,
                )

    async def set_status(
        self,
        entity_id: str,
        slot_type: SlotType,
        status: SlotStatus,
        *,
        error_message: str | None = None,
    ) -> None:
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE strategy.slots
                SET status=$3, error_message=$4, updated_at=now()
                WHERE entity_id=$1 AND slot_type=$2;
                """,
                entity_id,
                SlotType(slot_type).value,
                SlotStatus(status).value,
                error_message,
            )
        if result.endswith(" 0"):
            raise NotFoundError(
                f"slot {SlotType(slot_type).value} not found for entity {entity_id}",
                code=ErrorCode.SLOT_NOT_FOUND,
            )

    async def list_versions(self, entity_id: str, slot_type: SlotType) -> list[SlotVersion]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT entity_id, slot_type, version, content, change_note, created_by, created_at
                FROM strategy.slot_versions
                WHERE entity_id=$1 AND slot_type=$2
                ORDER BY version DESC;
                """,
                entity_id,
                SlotType(slot_type).value,
            )
        return [
            SlotVersion(
                entity_id=str(row["entity_id"]),
                slot_type=SlotType(row["slot_type"]),
                version=int(row["version"]),
                content=_decode_json(row["content"]),
                change_note=row["change_note"],
                created_by=row["created_by"],
                created_at=row["created_at"],
            )
            for row in rows
        ]


async def write_slot_content(
    conn,
    *,
    entity_id: str,
    slot_type: SlotType,
    content: Any,
    expected_version: int | None,
    status: SlotStatus = SlotStatus.COMPLETE,
    user_id: str | None = None,
    change_note: str | None = None,
) -> SlotRecord:
    """Replace a slot's content inside the caller's transaction.

    The previous content is snapshotted and the version bumped only when the
    content actually changes. ``expected_version=None`` skips the
    optimistic check.
    """
    slot_value = SlotType(slot_type).value
    row = await conn.fetchrow(
        f"SELECT {_SLOT_COLUMNS} FROM strategy.slots WHERE entity_id=$1 AND slot_type=$2 FOR UPDATE;",
        entity_id,
        slot_value,
    )
    if row is None:
        raise NotFoundError(
            f"slot {slot_value} not found for entity {entity_id}",
            code=ErrorCode.SLOT_NOT_FOUND,
        )
    current = _slot_from_row(row)
    if expected_version is not None and current.version != expected_version:
        raise SlotWriteConflict(
            f"slot {slot_value} changed concurrently (expected v{expected_version}, found v{current.version})",
            details={"expected_version": expected_version, "actual_version": current.version},
        )

    next_version = current.version
    if current.content != content:
        await conn.execute(
            """
            INSERT INTO strategy.slot_versions (entity_id, slot_type, version, content, change_note, created_by)
            VALUES ($1, $2, $3, $4::jsonb, $5, $6)
            ON CONFLICT (entity_id, slot_type, version) DO NOTHING;
            """,
            entity_id,
            slot_value,
            current.version,
            _encode_json(current.content),
            change_note,
            user_id,
        )
        next_version = current.version + 1

    row = await conn.fetchrow(
        f"""
        UPDATE strategy.slots
        SET content=$3::jsonb, version=$4, status=$5, error_message=NULL, updated_at=now()
        WHERE entity_id=$1 AND slot_type=$2
        RETURNING {_SLOT_COLUMNS};
        """,
        entity_id,
        slot_value,
        _encode_json(content),
        next_version,
        SlotStatus(status).value,
    )
    return _slot_from_row(row)


def _slot_from_row(row) -> SlotRecord:
    return SlotRecord(
        entity_id=str(row["entity_id"]),
        slot_type=SlotType(row["slot_type"]),
        title=row["title"],
        status=SlotStatus(row["status"]),
        content=_decode_json(row["content"]),
        version=int(row["version"]),
        error_message=row["error_message"],
        updated_at=row["updated_at"],
    )


def _encode_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value)


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value
