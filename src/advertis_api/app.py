from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from advertis_kernel.errors import (
    ErrorCode,
    InvalidTransitionError,
    KernelError,
    NotFoundError,
    OwnershipError,
    SchemaValidationError,
    SlotWriteConflict,
)
from advertis_kernel.logging import configure_logging
from advertis_kernel.modules import TriggeredBy
from advertis_kernel.slots import SlotType, parse_slot_type

from .container import KernelContainer, build_kernel
from .db import apply_schema, close_pool, get_pool
from .settings import get_settings

logger = logging.getLogger(__name__)

app = FastAPI(title="Advertis strategy kernel", version="0.1.0")


def status_for_error(exc: KernelError) -> int:
    if isinstance(exc, OwnershipError):
        return 403
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (InvalidTransitionError, SlotWriteConflict)):
        return 409
    if isinstance(exc, SchemaValidationError):
        return 422
    return 500


@app.exception_handler(KernelError)
async def _kernel_error_handler(_request: Request, exc: KernelError) -> JSONResponse:
    status = status_for_error(exc)
    if status >= 500:
        logger.error("unhandled kernel error", extra={"code": exc.code.value, "error": exc.message})
    return JSONResponse(status_code=status, content={"detail": exc.to_dict()})


@app.on_event("startup")
async def _startup() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    if getattr(app.state, "kernel", None) is not None:
        return
    pool = await get_pool(settings.pg_dsn, min_size=settings.pg_pool_min, max_size=settings.pg_pool_max)
    await apply_schema(pool)
    app.state.kernel = build_kernel(pool=pool, settings=settings)


@app.on_event("shutdown")
async def _shutdown() -> None:
    await close_pool()


def _kernel() -> KernelContainer:
    kernel: KernelContainer | None = getattr(app.state, "kernel", None)
    if kernel is None:
        raise HTTPException(status_code=503, detail="kernel not ready")
    return kernel


def _user_id(request: Request, kernel: KernelContainer) -> str:
    user_id = (request.headers.get(kernel.settings.user_header) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="unauthorized")
    return user_id


def _slot_type(raw: str) -> SlotType:
    slot_type = parse_slot_type(raw)
    if slot_type is None:
        raise HTTPException(status_code=404, detail=f"unknown slot type: {raw}")
    return slot_type


class CreateEntityRequest(BaseModel):
    name: str = Field(..., min_length=1)
    sector: str | None = None
    description: str | None = None
    answers: dict[str, Any] = Field(default_factory=dict)


class SaveSlotRequest(BaseModel):
    content: Any = None
    change_note: str | None = None


class PhaseTargetRequest(BaseModel):
    target: str = Field(..., min_length=1)


class FicheReviewRequest(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)


class AuditReviewRequest(BaseModel):
    risk_content: Any = None
    track_content: Any = None


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.post("/v1/entities", status_code=201)
async def create_entity(req: CreateEntityRequest, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    user_id = _user_id(request, kernel)
    entity = await kernel.entities.create(
        user_id=user_id,
        name=req.name,
        sector=req.sector,
        description=req.description,
        answers=req.answers,
    )
    slots = await kernel.slots.list_for_entity(entity.entity_id)
    return {"entity": entity.to_dict(), "slots": [slot.to_dict() for slot in slots]}


@app.get("/v1/entities/{entity_id}")
async def get_entity(entity_id: str, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    entity = await kernel.entities.require_owned(entity_id, _user_id(request, kernel))
    slots = await kernel.slots.list_for_entity(entity_id)
    return {"entity": entity.to_dict(), "slots": [slot.to_dict() for slot in slots]}


@app.get("/v1/entities/{entity_id}/slots/{slot_type}")
async def get_slot(entity_id: str, slot_type: str, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    record, parsed = await kernel.slot_service.read(entity_id, _user_id(request, kernel), _slot_type(slot_type))
    return {"slot": record.to_dict(), "parsed": parsed.to_dict()}


@app.put("/v1/entities/{entity_id}/slots/{slot_type}")
async def save_slot(entity_id: str, slot_type: str, req: SaveSlotRequest, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    result = await kernel.slot_service.save(
        entity_id,
        _user_id(request, kernel),
        _slot_type(slot_type),
        req.content,
        change_note=req.change_note,
    )
    return {"slot": result.slot.to_dict(), "warnings": result.warnings}


@app.get("/v1/entities/{entity_id}/slots/{slot_type}/versions")
async def list_slot_versions(entity_id: str, slot_type: str, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    versions = await kernel.slot_service.versions(entity_id, _user_id(request, kernel), _slot_type(slot_type))
    return {"versions": [version.to_dict() for version in versions]}


@app.post("/v1/entities/{entity_id}/phase/advance")
async def advance_phase(entity_id: str, req: PhaseTargetRequest, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    transition = await kernel.phases.advance(entity_id, _user_id(request, kernel), req.target)
    return transition.to_dict()


@app.post("/v1/entities/{entity_id}/phase/revert")
async def revert_phase(entity_id: str, req: PhaseTargetRequest, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    transition = await kernel.phases.revert(entity_id, _user_id(request, kernel), req.target)
    return transition.to_dict()


@app.post("/v1/entities/{entity_id}/phase/validate-fiche-review")
async def validate_fiche_review(entity_id: str, req: FicheReviewRequest, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    transition = await kernel.phases.validate_fiche_review(entity_id, _user_id(request, kernel), req.answers)
    return transition.to_dict()


@app.post("/v1/entities/{entity_id}/phase/validate-audit-review")
async def validate_audit_review(entity_id: str, req: AuditReviewRequest, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    transition = await kernel.phases.validate_audit_review(
        entity_id,
        _user_id(request, kernel),
        risk_content=req.risk_content,
        track_content=req.track_content,
    )
    return transition.to_dict()


@app.get("/v1/modules")
async def list_modules() -> dict[str, Any]:
    kernel = _kernel()
    return {"modules": [descriptor.to_dict() for descriptor in kernel.modules.all()]}


@app.post("/v1/entities/{entity_id}/modules/{module_id}/runs")
async def run_module(entity_id: str, module_id: str, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    user_id = _user_id(request, kernel)
    kernel.modules.require(module_id)
    await kernel.entities.require_owned(entity_id, user_id)
    outcome = await kernel.executor.execute(
        module_id,
        entity_id=entity_id,
        user_id=user_id,
        triggered_by=TriggeredBy.MANUAL,
    )
    return outcome.to_dict()


@app.get("/v1/entities/{entity_id}/runs")
async def list_runs(
    entity_id: str,
    request: Request,
    module_id: str | None = None,
    limit: int = 50,
) -> dict[str, Any]:
    kernel = _kernel()
    await kernel.entities.require_owned(entity_id, _user_id(request, kernel))
    runs = await kernel.runs.list_for_entity(entity_id, module_id=module_id, limit=limit)
    return {"runs": [run.to_dict() for run in runs]}


@app.get("/v1/runs/{run_id}")
async def get_run(run_id: str, request: Request) -> dict[str, Any]:
    kernel = _kernel()
    user_id = _user_id(request, kernel)
    run = await kernel.runs.get(run_id)
    if run is None:
        raise NotFoundError(f"Run not found: {run_id}", code=ErrorCode.RUN_NOT_FOUND)
    await kernel.entities.require_owned(run.entity_id, user_id)
    return run.to_dict()
