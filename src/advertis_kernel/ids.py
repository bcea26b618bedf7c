from __future__ import annotations

import uuid


def new_id() -> str:
    return str(uuid.uuid4())


def is_valid_id(raw: object) -> bool:
    """Ids are UUID columns; anything else can never match a row."""
    try:
        uuid.UUID(str(raw))
    except ValueError:
        return False
    return True
