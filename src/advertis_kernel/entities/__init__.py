from .store import EntityStore, MarketStudyStore
from .types import ANSWER_KEYS, EntityRecord

__all__ = ["ANSWER_KEYS", "EntityRecord", "EntityStore", "MarketStudyStore"]
