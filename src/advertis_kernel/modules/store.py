from __future__ import annotations

import json
from typing import Any

from blake3 import blake3

from ..ids import is_valid_id, new_id
from .types import ModuleRun, RunStatus, TriggeredBy

_RUN_COLUMNS = (
    "run_id, module_id, entity_id, user_id, status, triggered_by, input_snapshot, input_hash, "
    "output_data, error_message, duration_ms, created_at, completed_at"
)


def snapshot_hash(snapshot: Any) -> bytes:
    canonical = json.dumps(snapshot, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return blake3(canonical.encode("utf-8")).digest()


class ModuleRunStore:
    def __init__(self, *, pool) -> None:
        self._pool = pool

    async def create(
        self,
        *,
        module_id: str,
        entity_id: str,
        user_id: str,
        triggered_by: TriggeredBy = TriggeredBy.MANUAL,
    ) -> ModuleRun:
        run_id = new_id()
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO strategy.module_runs (run_id, module_id, entity_id, user_id, status, triggered_by)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {_RUN_COLUMNS};
                """,
                run_id,
                module_id,
                entity_id,
                user_id,
                RunStatus.RUNNING.value,
                TriggeredBy(triggered_by).value,
            )
        return _run_from_row(row)

    async def complete(
        self,
        run_id: str,
        *,
        input_snapshot: dict[str, Any],
        output_data: dict[str, Any],
        duration_ms: int,
    ) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE strategy.module_runs
                SET status=$2, input_snapshot=$3::jsonb, input_hash=$4, output_data=$5::jsonb,
                    duration_ms=$6, completed_at=now()
                WHERE run_id=$1 AND status=$7;
                """,
                run_id,
                RunStatus.COMPLETE.value,
                json.dumps(input_snapshot, default=str),
                snapshot_hash(input_snapshot),
                json.dumps(output_data, default=str),
                int(duration_ms),
                RunStatus.RUNNING.value,
            )

    async def fail(
        self,
        run_id: str,
        *,
        error_message: str,
        duration_ms: int,
        input_snapshot: dict[str, Any] | None = None,
    ) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE strategy.module_runs
                SET status=$2, error_message=$3, duration_ms=$4,
                    input_snapshot=COALESCE($5::jsonb, input_snapshot), completed_at=now()
                WHERE run_id=$1 AND status=$6;
                """,
                run_id,
                RunStatus.ERROR.value,
                error_message,
                int(duration_ms),
                json.dumps(input_snapshot, default=str) if input_snapshot is not None else None,
                RunStatus.RUNNING.value,
            )

    async def get(self, run_id: str) -> ModuleRun | None:
        if not is_valid_id(run_id):
            return None
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_RUN_COLUMNS} FROM strategy.module_runs WHERE run_id=$1;",
                run_id,
            )
        return _run_from_row(row) if row else None

    async def list_for_entity(
        self,
        entity_id: str,
        *,
        module_id: str | None = None,
        limit: int = 50,
    ) -> list[ModuleRun]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_RUN_COLUMNS}
                FROM strategy.module_runs
                WHERE entity_id=$1 AND ($2::text IS NULL OR module_id=$2)
                ORDER BY created_at DESC
                LIMIT $3;
                """,
                entity_id,
                module_id,
                max(1, min(int(limit), 500)),
            )
        return [_run_from_row(row) for row in rows]

    async def latest_complete(self, entity_id: str, module_id: str) -> ModuleRun | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_RUN_COLUMNS}
                FROM strategy.module_runs
                WHERE entity_id=$1 AND module_id=$2 AND status=$3
                ORDER BY created_at DESC
                LIMIT 1;
                """,
                entity_id,
                module_id,
                RunStatus.COMPLETE.value,
            )
        return _run_from_row(row) if row else None


def _run_from_row(row) -> ModuleRun:
    input_hash = row["input_hash"]
    return ModuleRun(
        run_id=str(row["run_id"]),
        module_id=row["module_id"],
        entity_id=str(row["entity_id"]),
        user_id=row["user_id"],
        status=RunStatus(row["status"]),
        triggered_by=TriggeredBy(row["triggered_by"]),
        input_snapshot=_decode_json(row["input_snapshot"]),
        input_hash=bytes(input_hash) if input_hash is not None else None,
        output_data=_decode_json(row["output_data"]),
        error_message=row["error_message"],
        duration_ms=row["duration_ms"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value
