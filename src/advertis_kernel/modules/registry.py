from __future__ import annotations

import logging

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from ..errors import ErrorCode, ModuleRegistrationError, NotFoundError
from ..slots.registry import SchemaRegistry, default_schema_registry
from ..slots.types import SlotType
from .base import Module
from .types import ModuleCategory, ModuleDescriptor

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """Addressable table of modules, built once at startup and passed around explicitly."""

    def __init__(self, *, schemas: SchemaRegistry | None = None) -> None:
        self._schemas = schemas or default_schema_registry
        self._modules: dict[str, Module] = {}

    def register(self, module: Module) -> None:
        descriptor = module.descriptor
        self._check_outputs(descriptor)
        self._check_schemas(descriptor)
        if descriptor.id in self._modules:
            logger.warning(
                "module registered twice; replacing previous registration",
                extra={"module_id": descriptor.id},
            )
        self._modules[descriptor.id] = module

    def get(self, module_id: str) -> Module | None:
        return self._modules.get(module_id)

    def require(self, module_id: str) -> Module:
        module = self._modules.get(module_id)
        if module is None:
            raise NotFoundError(f"Module not found: {module_id}", code=ErrorCode.MODULE_NOT_FOUND)
        return module

    def all(self) -> list[ModuleDescriptor]:
        return [module.descriptor for module in self._modules.values()]

    def for_slot(self, slot_type: SlotType) -> list[ModuleDescriptor]:
        slot_type = SlotType(slot_type)
        return [
            descriptor
            for descriptor in self.all()
            if any(target.slot_type is slot_type for target in descriptor.outputs)
        ]

    def by_category(self, category: ModuleCategory | str) -> list[ModuleDescriptor]:
        category = ModuleCategory(category)
        return [descriptor for descriptor in self.all() if descriptor.category is category]

    def auto_triggered_for(self, slot_type: SlotType) -> list[ModuleDescriptor]:
        slot_type = SlotType(slot_type)
        return [
            descriptor
            for descriptor in self.all()
            if descriptor.auto_trigger and descriptor.reads_slot(slot_type)
        ]

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def _check_outputs(self, descriptor: ModuleDescriptor) -> None:
        unknown = [
            f"{target.slot_type.value}.{target.path}"
            for target in descriptor.outputs
            if not self._schemas.has_path(target.slot_type, target.path)
        ]
        if unknown:
            raise ModuleRegistrationError(
                f"module {descriptor.id} targets unknown slot fields: {', '.join(unknown)}",
                details={"module_id": descriptor.id, "paths": unknown},
            )

    def _check_schemas(self, descriptor: ModuleDescriptor) -> None:
        for label, schema in (("input", descriptor.input_schema), ("output", descriptor.output_schema)):
            if not schema:
                continue
            try:
                Draft202012Validator.check_schema(schema)
            except SchemaError as exc:
                raise ModuleRegistrationError(
                    f"module {descriptor.id} has an invalid {label} schema: {exc.message}",
                    details={"module_id": descriptor.id},
                ) from exc
