from __future__ import annotations

from dataclasses import replace
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from advertis_api.app import app, status_for_error
from advertis_api.container import KernelContainer, assemble_kernel
from advertis_api.settings import Settings
from advertis_kernel.errors import (
    InvalidTransitionError,
    NotFoundError,
    OwnershipError,
    SchemaValidationError,
    SlotWriteConflict,
)
from tests.advertis_kernel._kernel_testkit import (
    OWNER,
    STRANGER,
    InMemoryEntityStore,
    InMemoryRunStore,
    InMemorySlotStore,
    InMemoryStudyStore,
    risk_audit_document,
    track_audit_document,
)

HEADERS = {"x-user-id": OWNER}


@pytest.fixture
def kernel() -> Iterator[KernelContainer]:
    slots = InMemorySlotStore()
    container = assemble_kernel(
        entities=InMemoryEntityStore(slots),
        slots=slots,
        studies=InMemoryStudyStore(),
        runs=InMemoryRunStore(),
        settings=replace(Settings(), user_header="x-user-id", auto_trigger_modules=False),
    )
    app.state.kernel = container
    yield container
    app.state.kernel = None


@pytest.fixture
def client(kernel: KernelContainer) -> TestClient:
    return TestClient(app)


def _create(client: TestClient) -> str:
    response = client.post("/v1/entities", json={"name": "Maison Test", "sector": "cosmétique"}, headers=HEADERS)
    assert response.status_code == 201
    return response.json()["entity"]["id"]


def test_healthz(client: TestClient) -> None:
    assert client.get("/healthz").json() == {"ok": "true"}


def test_create_entity_starts_in_fiche_with_eight_pending_slots(client: TestClient) -> None:
    response = client.post("/v1/entities", json={"name": "Maison Test", "answers": {"A1": "x", "A2": 3}}, headers=HEADERS)

    assert response.status_code == 201
    body = response.json()
    assert body["entity"]["phase"] == "fiche"
    assert body["entity"]["answers"] == {"A1": "x"}
    assert [slot["type"] for slot in body["slots"]] == ["A", "D", "V", "E", "R", "T", "I", "S"]
    assert {slot["status"] for slot in body["slots"]} == {"pending"}


def test_missing_user_header_is_unauthorized(client: TestClient) -> None:
    assert client.post("/v1/entities", json={"name": "x"}).status_code == 401


def test_ownership_and_not_found_mapping(client: TestClient) -> None:
    entity_id = _create(client)

    forbidden = client.get(f"/v1/entities/{entity_id}", headers={"x-user-id": STRANGER})
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"]["code"] == "ERR_1100"

    missing = client.get("/v1/entities/does-not-exist", headers=HEADERS)
    assert missing.status_code == 404


def test_slot_read_save_and_versions(client: TestClient) -> None:
    entity_id = _create(client)

    read = client.get(f"/v1/entities/{entity_id}/slots/r", headers=HEADERS)
    assert read.status_code == 200
    assert read.json()["parsed"]["errors"] == ["Content is null"]
    assert read.json()["parsed"]["data"]["riskScore"] == 50

    saved = client.put(
        f"/v1/entities/{entity_id}/slots/R",
        json={"content": {"riskScore": "45"}, "change_note": "brouillon"},
        headers=HEADERS,
    )
    assert saved.status_code == 200
    assert saved.json()["slot"]["version"] == 2
    assert saved.json()["warnings"]

    versions = client.get(f"/v1/entities/{entity_id}/slots/R/versions", headers=HEADERS).json()["versions"]
    assert [(v["version"], v["content"], v["changeNote"]) for v in versions] == [(1, None, "brouillon")]

    assert client.get(f"/v1/entities/{entity_id}/slots/Z", headers=HEADERS).status_code == 404


def test_phase_endpoints(client: TestClient, kernel: KernelContainer) -> None:
    entity_id = _create(client)

    rejected = client.post(f"/v1/entities/{entity_id}/phase/advance", json={"target": "audit-t"}, headers=HEADERS)
    assert rejected.status_code == 409
    assert rejected.json()["detail"]["details"] == {"current": "fiche", "target": "audit-t"}

    advanced = client.post(f"/v1/entities/{entity_id}/phase/advance", json={"target": "fiche-review"}, headers=HEADERS)
    assert advanced.json() == {"entityId": entity_id, "from": "fiche", "to": "fiche-review", "status": "generating"}

    reviewed = client.post(
        f"/v1/entities/{entity_id}/phase/validate-fiche-review",
        json={"answers": {"A1": "Fondée à Lyon"}},
        headers=HEADERS,
    )
    assert reviewed.json()["to"] == "audit-r"

    wrong = client.post(
        f"/v1/entities/{entity_id}/phase/validate-audit-review",
        json={"risk_content": risk_audit_document(), "track_content": track_audit_document()},
        headers=HEADERS,
    )
    assert wrong.status_code == 409

    reverted = client.post(f"/v1/entities/{entity_id}/phase/revert", json={"target": "fiche"}, headers=HEADERS)
    assert reverted.json()["to"] == "fiche"
    assert kernel.entities.rows[entity_id].answers == {"A1": "Fondée à Lyon"}


def test_modules_and_runs(client: TestClient) -> None:
    entity_id = _create(client)

    modules = client.get("/v1/modules").json()["modules"]
    assert {module["id"] for module in modules} == {"data-quality-scorer", "audit-synthesis"}

    outcome = client.post(f"/v1/entities/{entity_id}/modules/data-quality-scorer/runs", headers=HEADERS).json()
    assert outcome["success"] is True
    assert outcome["data"]["globalScore"] == 0

    run = client.get(f"/v1/runs/{outcome['runId']}", headers=HEADERS).json()
    assert run["status"] == "complete"
    assert run["durationMs"] >= 0
    assert isinstance(run["inputHash"], str)

    runs = client.get(f"/v1/entities/{entity_id}/runs", headers=HEADERS).json()["runs"]
    assert [item["id"] for item in runs] == [outcome["runId"]]

    assert client.get(f"/v1/runs/{outcome['runId']}", headers={"x-user-id": STRANGER}).status_code == 403
    assert client.get("/v1/runs/unknown", headers=HEADERS).status_code == 404
    assert client.post(f"/v1/entities/{entity_id}/modules/nope/runs", headers=HEADERS).status_code == 404


def test_status_for_error() -> None:
    assert status_for_error(NotFoundError("x")) == 404
    assert status_for_error(OwnershipError("x")) == 403
    assert status_for_error(InvalidTransitionError("x")) == 409
    assert status_for_error(SlotWriteConflict("x")) == 409
    assert status_for_error(SchemaValidationError("x")) == 422
