from .ddl import DDL_STATEMENTS, ensure_schema

__all__ = ["DDL_STATEMENTS", "ensure_schema"]
