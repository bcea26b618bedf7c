from __future__ import annotations

from abc import ABC, abstractmethod

from .types import ModuleContext, ModuleDescriptor, ModuleResult


class Module(ABC):
    descriptor: ModuleDescriptor

    @property
    def id(self) -> str:
        return self.descriptor.id

    @abstractmethod
    async def execute(self, ctx: ModuleContext) -> ModuleResult:
        raise NotImplementedError
