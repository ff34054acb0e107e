import httpx
import pytest
import pytest_asyncio

import api.main as api_main
from contractgen.error_handling import PersistenceError
from contractgen.observability import ObservabilityManager


@pytest_asyncio.fixture
async def client(orchestrator, monkeypatch):
    monkeypatch.setattr(api_main, "orchestrator", orchestrator)
    transport = httpx.ASGITransport(app=api_main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_generate_contract(client):
    response = await client.post("/contracts/generate", json={"lead_id": "lead-downtown-land"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["risk_score"] == 75
    assert body["approval"]["status"] == "pending_review"
    assert body["state"] == "pending_review"


@pytest.mark.asyncio
async def test_generate_unknown_lead(client):
    response = await client.post("/contracts/generate", json={"lead_id": "missing-lead"})

    assert response.status_code == 404
    body = response.json()
    assert body["errors"] == ["Lead not found: missing-lead"]
    assert body["error_type"] == "LeadNotFoundError"


@pytest.mark.asyncio
async def test_preview_unknown_lead(client):
    response = await client.post("/contracts/preview", json={"lead_id": "missing-lead"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_generate_rejects_bad_overrides(client):
    response = await client.post(
        "/contracts/generate",
        json={"lead_id": "lead-new-cairo", "overrides": {"commission_rate": "a lot"}},
    )

    assert response.status_code == 400
    assert response.json()["error_type"] == "AssemblyError"


@pytest.mark.asyncio
async def test_generate_persistence_failure_is_a_server_error(client, seeded_store, monkeypatch):
    def fail(record, review, approval_data):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(seeded_store.records, "save_contract", fail)

    response = await client.post("/contracts/generate", json={"lead_id": "lead-new-cairo"})

    assert response.status_code == 500
    assert response.json()["errors"] == ["database is locked"]


@pytest.mark.asyncio
async def test_preview_contract(client):
    response = await client.post(
        "/contracts/preview",
        json={"lead_id": "lead-new-cairo", "contract_type": "sale_agreement", "overrides": {"contract_duration": 12}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["contract_data"]["contract_type"] == "sale_agreement"
    assert body["contract_data"]["terms"]["contract_duration"] == 12
    assert body["html"].startswith("<!DOCTYPE html>")
    listed = await client.get("/contracts")
    assert listed.json()["count"] == 0


@pytest.mark.asyncio
async def test_bulk_generate_validates_lead_count(client):
    response = await client.post("/contracts/bulk-generate", json={"lead_ids": [f"lead-{i}" for i in range(51)]})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_bulk_generate(client):
    response = await client.post(
        "/contracts/bulk-generate",
        json={"lead_ids": ["lead-new-cairo", "missing-lead"], "batch_size": 2},
    )

    assert response.status_code == 200
    body = response.json()
    assert (body["total"], body["succeeded"], body["failed"]) == (2, 1, 1)


@pytest.mark.asyncio
async def test_review_workflow(client):
    generated = (await client.post("/contracts/generate", json={"lead_id": "lead-downtown-land"})).json()
    contract_id = generated["contract_id"]

    queue = (await client.get("/contracts/review")).json()
    assert [item["contract_id"] for item in queue["items"]] == [contract_id]
    assert queue["summary"]["high_priority"] == 1

    decision = {"contract_id": contract_id, "action": "approve", "reviewer": "legal@virtualestate.test"}
    response = await client.post("/contracts/review", json=decision)
    assert response.status_code == 200
    assert response.json()["contract"]["status"] == "approved"

    response = await client.post("/contracts/review", json=decision)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_review_decision_validation(client):
    response = await client.post(
        "/contracts/review",
        json={"contract_id": "x", "action": "archive", "reviewer": "legal@virtualestate.test"},
    )
    assert response.status_code == 422

    response = await client.post(
        "/contracts/review",
        json={"contract_id": "missing", "action": "approve", "reviewer": "legal@virtualestate.test"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_contracts_by_lead(client):
    await client.post("/contracts/generate", json={"lead_id": "lead-new-cairo"})
    await client.post("/contracts/generate", json={"lead_id": "lead-downtown-land"})

    body = (await client.get("/contracts", params={"lead_id": "lead-new-cairo"})).json()

    assert body["count"] == 1
    assert body["contracts"][0]["status"] == "approved"


@pytest.mark.asyncio
async def test_download_contract(client):
    generated = (await client.post("/contracts/generate", json={"lead_id": "lead-new-cairo"})).json()
    contract_id = generated["contract_id"]

    response = await client.get(f"/contracts/{contract_id}/download", params={"format": "html"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert f'filename="contract_{contract_id}.html"' in response.headers["content-disposition"]
    assert generated["contract_reference"] in response.text

    response = await client.get(f"/contracts/{contract_id}/download")
    assert response.json()["contract"]["id"] == contract_id


@pytest.mark.asyncio
async def test_download_errors(client):
    assert (await client.get("/contracts/missing/download")).status_code == 404
    assert (await client.get("/contracts/missing/download", params={"format": "pdf"})).status_code == 422


@pytest.mark.asyncio
async def test_metrics_disabled_without_observability(client):
    response = await client.get("/metrics")
    assert response.json() == {"enabled": False}


@pytest.mark.asyncio
async def test_metrics_summary(make_orchestrator, monkeypatch, tmp_path):
    observability = ObservabilityManager(trace_dir=str(tmp_path / "traces"))
    monkeypatch.setattr(api_main, "orchestrator", make_orchestrator(observability=observability))
    transport = httpx.ASGITransport(app=api_main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        await client.post("/contracts/generate", json={"lead_id": "lead-downtown-land"})
        response = await client.get("/metrics")

    body = response.json()
    assert body["enabled"] is True
    assert body["approval_outcomes"] == {"pending_review": 1}
    assert body["stages"]["Persistence"]["success_count"] == 1


@pytest.mark.asyncio
async def test_shutdown_writes_metrics_summary(make_orchestrator, monkeypatch, tmp_path):
    observability = ObservabilityManager(trace_dir=str(tmp_path / "traces"))
    monkeypatch.setattr(api_main, "orchestrator", make_orchestrator(observability=observability))
    closed = []

    async def fake_shutdown_browser():
        closed.append(True)

    monkeypatch.setattr(api_main, "shutdown_browser", fake_shutdown_browser)

    await api_main.shutdown_event()

    assert closed == [True]
    [metrics_file] = list((tmp_path / "traces").glob("metrics_*.json"))
    assert "approval_outcomes" in metrics_file.read_text(encoding="utf-8")
