from __future__ import annotations

import json
from typing import Any

from ..errors import ErrorCode, InvalidTransitionError, NotFoundError, OwnershipError
from ..ids import is_valid_id, new_id
from ..slots.store import write_slot_content
from ..slots.types import SlotStatus, SlotType
from .types import EntityRecord, clean_answers

_ENTITY_COLUMNS = "entity_id, user_id, name, sector, description, phase, status, answers, created_at, updated_at"


class EntityStore:
    def __init__(self, *, pool) -> None:
        self._pool = pool

    async def create(
        self,
        *,
        user_id: str,
        name: str,
        sector: str | None = None,
        description: str | None = None,
        answers: dict[str, Any] | None = None,
    ) -> EntityRecord:
        """Insert an entity in phase ``fiche`` together with its eight empty slots."""
        entity_id = new_id()
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO strategy.entities (entity_id, user_id, name, sector, description, phase, status, answers)
                    VALUES ($1, $2, $3, $4, $5, 'fiche', 'draft', $6::jsonb)
                    RETURNING {_ENTITY_COLUMNS};
                    """,
                    entity_id,
                    user_id,
                    name,
                    sector,
                    description,
                    json.dumps(clean_answers(answers or {})),
                )
                await conn.executemany(
                    """
                    INSERT INTO strategy.slots (entity_id, slot_type, title, status, content, version)
                    VALUES ($1, $2, $3, 'pending', NULL, 1);
                    """,
                    [(entity_id, slot_type.value, slot_type.label) for slot_type in SlotType],
                )
        return _entity_from_row(row)

    async def get(self, entity_id: str) -> EntityRecord | None:
        if not is_valid_id(entity_id):
            return None
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ENTITY_COLUMNS} FROM strategy.entities WHERE entity_id=$1;",
                entity_id,
            )
        return _entity_from_row(row) if row else None

    async def require_owned(self, entity_id: str, user_id: str) -> EntityRecord:
        entity = await self.get(entity_id)
        if entity is None:
            raise NotFoundError(f"Entity not found: {entity_id}", code=ErrorCode.ENTITY_NOT_FOUND)
        if entity.user_id != user_id:
            raise OwnershipError(f"Entity {entity_id} is not owned by the requesting user")
        return entity

    async def get_answers(self, entity_id: str) -> dict[str, str]:
        entity = await self.get(entity_id)
        return dict(entity.answers) if entity else {}

    async def update_phase(
        self,
        entity_id: str,
        *,
        expected_phase: str,
        phase: str,
        status: str,
    ) -> EntityRecord:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE strategy.entities
                SET phase=$3, status=$4, updated_at=now()
                WHERE entity_id=$1 AND phase=$2
                RETURNING {_ENTITY_COLUMNS};
                """,
                entity_id,
                expected_phase,
                phase,
                status,
            )
        if row is None:
            raise _phase_conflict(entity_id, expected_phase, phase)
        return _entity_from_row(row)

    async def set_status(self, entity_id: str, status: str) -> None:
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE strategy.entities SET status=$2, updated_at=now() WHERE entity_id=$1;",
                entity_id,
                status,
            )
        if result.endswith(" 0"):
            raise NotFoundError(f"Entity not found: {entity_id}", code=ErrorCode.ENTITY_NOT_FOUND)

    async def save_answers_and_advance(
        self,
        entity_id: str,
        *,
        answers: dict[str, Any],
        expected_phase: str,
        phase: str,
        status: str,
    ) -> EntityRecord:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    UPDATE strategy.entities
                    SET answers=$3::jsonb, phase=$4, status=$5, updated_at=now()
                    WHERE entity_id=$1 AND phase=$2
                    RETURNING {_ENTITY_COLUMNS};
                    """,
                    entity_id,
                    expected_phase,
                    json.dumps(clean_answers(answers)),
                    phase,
                    status,
                )
                if row is None:
                    raise _phase_conflict(entity_id, expected_phase, phase)
        return _entity_from_row(row)

    async def save_slots_and_advance(
        self,
        entity_id: str,
        *,
        contents: dict[SlotType, Any],
        user_id: str,
        expected_phase: str,
        phase: str,
        status: str,
        change_note: str | None = None,
    ) -> EntityRecord:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                for slot_type, content in contents.items():
                    await write_slot_content(
                        conn,
                        entity_id=entity_id,
                        slot_type=slot_type,
                        content=content,
                        expected_version=None,
                        status=SlotStatus.COMPLETE,
                        user_id=user_id,
                        change_note=change_note,
                    )
                row = await conn.fetchrow(
                    f"""
                    UPDATE strategy.entities
                    SET phase=$3, status=$4, updated_at=now()
                    WHERE entity_id=$1 AND phase=$2
                    RETURNING {_ENTITY_COLUMNS};
                    """,
                    entity_id,
                    expected_phase,
                    phase,
                    status,
                )
                if row is None:
                    raise _phase_conflict(entity_id, expected_phase, phase)
        return _entity_from_row(row)


class MarketStudyStore:
    def __init__(self, *, pool) -> None:
        self._pool = pool

    async def get(self, entity_id: str) -> dict[str, Any] | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT status, data, updated_at FROM strategy.market_studies WHERE entity_id=$1;",
                entity_id,
            )
        if row is None:
            return None
        data = _decode_json(row["data"]) or {}
        return {"status": row["status"], **(data if isinstance(data, dict) else {"data": data})}


def _phase_conflict(entity_id: str, expected_phase: str, phase: str) -> InvalidTransitionError:
    return InvalidTransitionError(
        f"Entity {entity_id} is no longer in phase {expected_phase}",
        current=expected_phase,
        target=phase,
        code=ErrorCode.PHASE_CONFLICT,
        retryable=True,
    )


def _entity_from_row(row) -> EntityRecord:
    answers = _decode_json(row["answers"]) or {}
    return EntityRecord(
        entity_id=str(row["entity_id"]),
        user_id=row["user_id"],
        name=row["name"],
        sector=row["sector"],
        description=row["description"],
        phase=row["phase"],
        status=row["status"],
        answers=clean_answers(answers) if isinstance(answers, dict) else {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value
