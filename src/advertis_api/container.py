from __future__ import annotations

from dataclasses import dataclass

from advertis_kernel.entities import EntityStore, MarketStudyStore
from advertis_kernel.modules import (
    InputResolver,
    ModuleExecutor,
    ModuleRegistry,
    ModuleRunStore,
    OutputApplier,
    build_default_registry,
)
from advertis_kernel.phases import PhaseStateMachine
from advertis_kernel.slots import ContentParser, SchemaRegistry, SlotService, SlotStore

from .settings import Settings, get_settings


@dataclass(frozen=True)
class KernelContainer:
    settings: Settings
    schemas: SchemaRegistry
    parser: ContentParser
    entities: EntityStore
    slots: SlotStore
    studies: MarketStudyStore
    runs: ModuleRunStore
    modules: ModuleRegistry
    executor: ModuleExecutor
    phases: PhaseStateMachine
    slot_service: SlotService


def assemble_kernel(
    *,
    entities,
    slots,
    studies,
    runs,
    settings: Settings | None = None,
    modules: ModuleRegistry | None = None,
) -> KernelContainer:
    """Wire the kernel services around already-built stores."""
    settings = settings or get_settings()
    schemas = SchemaRegistry()
    parser = ContentParser(schemas)
    registry = modules or build_default_registry(schemas=schemas)

    resolver = InputResolver(slots=slots, entities=entities, studies=studies, runs=runs, parser=parser)
    applier = OutputApplier(
        slots=slots,
        parser=parser,
        strict_revalidation=settings.strict_output_revalidation,
        max_write_attempts=settings.slot_write_max_attempts,
    )
    executor = ModuleExecutor(
        registry=registry,
        resolver=resolver,
        applier=applier,
        runs=runs,
        entities=entities,
    )
    machine = PhaseStateMachine(entities=entities, parser=parser)
    return KernelContainer(
        settings=settings,
        schemas=schemas,
        parser=parser,
        entities=entities,
        slots=slots,
        studies=studies,
        runs=runs,
        modules=registry,
        executor=executor,
        phases=machine,
        slot_service=SlotService(
            slots=slots,
            entities=entities,
            parser=parser,
            auto_trigger=executor if settings.auto_trigger_modules else None,
            phases=machine,
        ),
    )


def build_kernel(*, pool, settings: Settings | None = None) -> KernelContainer:
    return assemble_kernel(
        entities=EntityStore(pool=pool),
        slots=SlotStore(pool=pool),
        studies=MarketStudyStore(pool=pool),
        runs=ModuleRunStore(pool=pool),
        settings=settings,
    )
