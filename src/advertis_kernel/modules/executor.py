from __future__ import annotations

import copy
import logging
from typing import Any

from jsonschema import Draft202012Validator

from ..errors import ErrorCode, KernelError, NotFoundError, OwnershipError, SchemaValidationError
from ..logging import Timer
from ..slots.types import SlotType
from .applier import OutputApplier
from .registry import ModuleRegistry
from .resolver import InputResolver
from .types import ExecutionOutcome, ModuleContext, TriggeredBy

logger = logging.getLogger(__name__)


class ModuleExecutionError(KernelError):
    """A module reported ``success=False``."""


def schema_errors(schema: dict[str, Any], instance: Any) -> list[str]:
    if not schema:
        return []
    validator = Draft202012Validator(schema)
    messages: list[str] = []
    for err in sorted(validator.iter_errors(instance), key=lambda e: list(e.path)):
        location = ".".join(str(part) for part in err.path)
        messages.append(f"{location}: {err.message}" if location else err.message)
    return messages


class ModuleExecutor:
    def __init__(
        self,
        *,
        registry: ModuleRegistry,
        resolver: InputResolver,
        applier: OutputApplier,
        runs,
        entities,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._applier = applier
        self._runs = runs
        self._entities = entities

    async def execute(
        self,
        module_id: str,
        *,
        entity_id: str,
        user_id: str,
        triggered_by: TriggeredBy = TriggeredBy.MANUAL,
    ) -> ExecutionOutcome:
        module = self._registry.get(module_id)
        if module is None:
            return ExecutionOutcome(success=False, run_id="", error=f"Module not found: {module_id}")
        descriptor = module.descriptor

        try:
            await self._entities.require_owned(entity_id, user_id)
        except (NotFoundError, OwnershipError):
            return ExecutionOutcome(success=False, run_id="", error="Entity not found or unauthorized")

        run = await self._runs.create(
            module_id=descriptor.id,
            entity_id=entity_id,
            user_id=user_id,
            triggered_by=triggered_by,
        )
        logger.info(
            "module run started",
            extra={"module_id": descriptor.id, "run_id": run.run_id, "entity_id": entity_id},
        )
        timer = Timer()
        inputs: dict[str, Any] | None = None

        try:
            inputs = await self._resolver.resolve(descriptor.inputs, entity_id)

            errors = schema_errors(descriptor.input_schema, inputs)
            if errors:
                raise SchemaValidationError(
                    f"Input validation failed: {'; '.join(errors)}",
                    errors=errors,
                    code=ErrorCode.INPUT_VALIDATION,
                )

            result = await module.execute(
                ModuleContext(
                    entity_id=entity_id,
                    user_id=user_id,
                    run_id=run.run_id,
                    inputs=copy.deepcopy(inputs),
                )
            )
            if not result.success:
                raise ModuleExecutionError(result.error or f"Module {descriptor.id} reported failure")
            data = result.data or {}

            errors = schema_errors(descriptor.output_schema, data)
            if errors:
                raise SchemaValidationError(
                    f"Output validation failed: {'; '.join(errors)}",
                    errors=errors,
                    code=ErrorCode.OUTPUT_VALIDATION,
                )

            if descriptor.outputs:
                await self._applier.apply(
                    entity_id=entity_id,
                    targets=descriptor.outputs,
                    output=data,
                    user_id=user_id,
                    change_note=f"module {descriptor.id}",
                )

            duration_ms = timer.stop()
            await self._runs.complete(
                run.run_id,
                input_snapshot=copy.deepcopy(inputs),
                output_data=copy.deepcopy(data),
                duration_ms=duration_ms,
            )
        except Exception as exc:
            duration_ms = timer.stop()
            message = exc.message if isinstance(exc, KernelError) else (str(exc) or type(exc).__name__)
            logger.warning(
                "module run failed",
                extra={"module_id": descriptor.id, "run_id": run.run_id, "error": message},
            )
            await self._record_failure(run.run_id, message, duration_ms, inputs)
            return ExecutionOutcome(success=False, run_id=run.run_id, error=message)

        logger.info(
            "module run complete",
            extra={"module_id": descriptor.id, "run_id": run.run_id, "duration_ms": duration_ms},
        )
        return ExecutionOutcome(success=True, run_id=run.run_id, data=data)

    async def run_auto_triggered(
        self,
        *,
        entity_id: str,
        user_id: str,
        slot_type: SlotType,
    ) -> list[ExecutionOutcome]:
        """Run, in registration order, every auto-triggered module that reads ``slot_type``."""
        outcomes: list[ExecutionOutcome] = []
        for descriptor in self._registry.auto_triggered_for(slot_type):
            outcomes.append(
                await self.execute(
                    descriptor.id,
                    entity_id=entity_id,
                    user_id=user_id,
                    triggered_by=TriggeredBy.AUTO,
                )
            )
        return outcomes

    async def _record_failure(
        self,
        run_id: str,
        message: str,
        duration_ms: int,
        inputs: dict[str, Any] | None,
    ) -> None:
        try:
            await self._runs.fail(
                run_id,
                error_message=message,
                duration_ms=duration_ms,
                input_snapshot=copy.deepcopy(inputs) if inputs is not None else None,
            )
        except Exception:
            logger.exception("could not record module run failure", extra={"run_id": run_id})
