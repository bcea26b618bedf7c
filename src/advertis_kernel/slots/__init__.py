from .parser import ContentParser, ParseResult, SaveCheck, deep_merge, default_content_parser, strip_code_fence
from .registry import SLOT_SCHEMAS, SchemaCheck, SchemaRegistry, default_schema_registry
from .service import SlotGenerationResult, SlotSaveResult, SlotService, TextGenerator
from .store import SlotStore
from .types import SlotRecord, SlotStatus, SlotType, SlotVersion, parse_slot_type

__all__ = [
    "SLOT_SCHEMAS",
    "ContentParser",
    "ParseResult",
    "SaveCheck",
    "SchemaCheck",
    "SchemaRegistry",
    "SlotGenerationResult",
    "SlotRecord",
    "SlotSaveResult",
    "SlotService",
    "SlotStatus",
    "SlotStore",
    "SlotType",
    "SlotVersion",
    "TextGenerator",
    "deep_merge",
    "default_content_parser",
    "default_schema_registry",
    "parse_slot_type",
    "strip_code_fence",
]
