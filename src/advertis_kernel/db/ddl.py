from __future__ import annotations

from typing import Iterable


DDL_STATEMENTS: list[str] = [
    "CREATE SCHEMA IF NOT EXISTS strategy;",
    # strategy.entities (the brand being taken through the pipeline)
    """
    CREATE TABLE IF NOT EXISTS strategy.entities (
      entity_id     UUID         NOT NULL PRIMARY KEY,
      user_id       TEXT         NOT NULL,
      name          TEXT         NOT NULL,
      sector        TEXT         NULL,
      description   TEXT         NULL,
      phase         TEXT         NOT NULL DEFAULT 'fiche',
      status        TEXT         NOT NULL DEFAULT 'draft',
      answers       JSONB        NOT NULL DEFAULT '{}'::jsonb,
      created_at    TIMESTAMPTZ  NOT NULL DEFAULT now(),
      updated_at    TIMESTAMPTZ  NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS entities_user_created
      ON strategy.entities (user_id, created_at DESC);
    """,
    # strategy.slots (exactly one row per entity and slot type)
    """
    CREATE TABLE IF NOT EXISTS strategy.slots (
      entity_id      UUID         NOT NULL,
      slot_type      TEXT         NOT NULL,
      title          TEXT         NOT NULL,
      status         TEXT         NOT NULL DEFAULT 'pending',
      content        JSONB        NULL,
      version        INT          NOT NULL DEFAULT 1,
      error_message  TEXT         NULL,
      created_at     TIMESTAMPTZ  NOT NULL DEFAULT now(),
      updated_at     TIMESTAMPTZ  NOT NULL DEFAULT now(),
      PRIMARY KEY (entity_id, slot_type),
      CONSTRAINT slots_entity_fk
        FOREIGN KEY (entity_id) REFERENCES strategy.entities(entity_id) ON DELETE CASCADE
    );
    """,
    # strategy.slot_versions (snapshots taken before each content change)
    """
    CREATE TABLE IF NOT EXISTS strategy.slot_versions (
      entity_id    UUID         NOT NULL,
      slot_type    TEXT         NOT NULL,
      version      INT          NOT NULL,
      content      JSONB        NULL,
      change_note  TEXT         NULL,
      created_by   TEXT         NULL,
      created_at   TIMESTAMPTZ  NOT NULL DEFAULT now(),
      PRIMARY KEY (entity_id, slot_type, version),
      CONSTRAINT slot_versions_slot_fk
        FOREIGN KEY (entity_id, slot_type) REFERENCES strategy.slots(entity_id, slot_type) ON DELETE CASCADE
    );
    """,
    # strategy.market_studies (owned elsewhere; read-only here)
    """
    CREATE TABLE IF NOT EXISTS strategy.market_studies (
      entity_id    UUID         NOT NULL PRIMARY KEY,
      status       TEXT         NOT NULL DEFAULT 'pending',
      data         JSONB        NOT NULL DEFAULT '{}'::jsonb,
      updated_at   TIMESTAMPTZ  NOT NULL DEFAULT now(),
      CONSTRAINT market_studies_entity_fk
        FOREIGN KEY (entity_id) REFERENCES strategy.entities(entity_id) ON DELETE CASCADE
    );
    """,
    # strategy.module_runs (audit trail of module executions)
    """
    CREATE TABLE IF NOT EXISTS strategy.module_runs (
      run_id          UUID         NOT NULL PRIMARY KEY,
      module_id       TEXT         NOT NULL,
      entity_id       UUID         NOT NULL,
      user_id         TEXT         NOT NULL,
      status          TEXT         NOT NULL,
      triggered_by    TEXT         NOT NULL DEFAULT 'manual',
      input_snapshot  JSONB        NULL,
      input_hash      BYTEA        NULL,
      output_data     JSONB        NULL,
      error_message   TEXT         NULL,
      duration_ms     INT          NULL,
      created_at      TIMESTAMPTZ  NOT NULL DEFAULT now(),
      completed_at    TIMESTAMPTZ  NULL,
      CONSTRAINT module_runs_entity_fk
        FOREIGN KEY (entity_id) REFERENCES strategy.entities(entity_id) ON DELETE CASCADE
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS module_runs_entity_module_created
      ON strategy.module_runs (entity_id, module_id, created_at DESC);
    """,
]


async def ensure_schema(conn) -> None:
    for stmt in _compact_statements(DDL_STATEMENTS):
        await conn.execute(stmt)


def _compact_statements(statements: Iterable[str]) -> Iterable[str]:
    for stmt in statements:
        cleaned = stmt.strip()
        if not cleaned:
            continue
        yield cleaned
