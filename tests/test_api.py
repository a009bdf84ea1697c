from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from proposal_engine.deps import get_ai_client, get_snapshot_repo
from proposal_engine.main import app
from proposal_engine.services.ai_client import RATE_LIMIT_MESSAGE, AIServiceError
from proposal_engine.services.snapshot_repo import SnapshotStoreError

DATE = "2026-10-18"


class FakeAI:
    def __init__(self, reply="Texto reescrito.", error=None):
        self.reply = reply
        self.error = error

    async def rewrite(self, original_text, instruction, context, timeout=None):
        if self.error:
            raise self.error
        return self.reply


class FakeRepo:
    def __init__(self, error=None):
        self.error = error
        self.saved = []

    def save(self, case_id, snapshot, created_by=None):
        if self.error:
            raise self.error
        self.saved.append((case_id, snapshot))
        return {"case_id": case_id, "version_number": len(self.saved)}

    def list_versions(self, case_id):
        if self.error:
            raise self.error
        return [{"case_id": c, "version_number": i + 1} for i, (c, _) in enumerate(self.saved) if c == case_id][::-1]

    def load_latest(self, case_id):
        if self.error:
            raise self.error
        rows = [{"version_number": i + 1, "content": s} for i, (c, s) in enumerate(self.saved) if c == case_id]
        return rows[-1] if rows else None


@pytest.fixture
def api():
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def draft_json(draft):
    return draft.model_dump(mode="json")


def test_health(api):
    assert api.get("/health/live").json() == {"status": "ok"}
    ready = api.get("/health/ready").json()
    assert ready["status"] == "ok"
    assert set(ready) == {"status", "ai_gateway_configured", "snapshot_store_configured"}


def test_totals(api, services):
    body = {"services": [s.model_dump(mode="json") for s in services]}
    res = api.post("/pricing/totals", json=body)
    assert res.status_code == 200
    data = res.json()
    assert Decimal(str(data["one_time"])) == Decimal("15000")
    assert Decimal(str(data["monthly"])) == Decimal("2000")


def test_totals_rejects_amounts_too_large(api, services):
    body = {"services": [s.model_dump(mode="json") for s in services]}
    body["services"][0]["suggested_fee"] = "1e30"
    res = api.post("/pricing/totals", json=body)
    assert res.status_code == 422

    res = api.post("/pricing/installments/validate", json={"installments": [], "amount": "1e30"})
    assert res.status_code == 422


def test_narrative_refused_with_422(api):
    res = api.post("/pricing/narrative", json={"mode": "global", "services": []})
    assert res.status_code == 422
    assert "monto" in res.json()["detail"]


def test_narrative_summed(api, services):
    res = api.post("/pricing/narrative", json={
        "mode": "summed", "services": [s.model_dump(mode="json") for s in services],
    })
    assert res.status_code == 200
    assert "• Cumplimiento fiscal" in res.json()["narrative"]


def test_installments_validate(api):
    res = api.post("/pricing/installments/validate", json={
        "installments": [{"percentage": 60, "description": "a la firma"},
                         {"percentage": 30, "description": "al cierre"}],
        "amount": "100000",
    })
    data = res.json()
    assert data["is_valid"] is False
    assert data["total_percentage"] == 90
    assert "90%" in data["warning"]
    assert [Decimal(str(a["amount"])) for a in data["amounts"]] == [Decimal("60000"), Decimal("30000")]


def test_assemble(api, draft_json):
    res = api.post("/proposal/assemble", json={"draft": draft_json, "document_date": DATE})
    assert res.status_code == 200
    data = res.json()
    assert data["sections"][0]["section_id"] == "letterhead"
    assert data["sections"][1]["display_text"] == "Ciudad de México, a 18 de octubre de 2026."
    assert 'data-section="pricing-service-a"' in data["markup"]
    assert data["warnings"] == []


def test_override_then_restore_round_trip(api, draft_json):
    original = api.post("/proposal/assemble", json={"draft": draft_json, "document_date": DATE}).json()["markup"]
    res = api.post("/proposal/overrides", json={
        "draft": draft_json, "document_date": DATE, "section_id": "transition", "new_text": "Texto propio.",
    })
    assert res.status_code == 200
    edited = res.json()
    assert 'data-override="manual"' in edited["markup"]
    assert edited["draft"]["overrides"][0]["section_id"] == "transition"

    res = api.post("/proposal/overrides/restore", json={
        "draft": edited["draft"], "document_date": DATE, "section_id": "transition",
    })
    assert res.json()["markup"] == original


def test_parse_and_insert(api):
    markup = api.post("/proposal/insert", json={"markup": "", "section_id": "background", "new_text": "Hola"}).json()
    assert api.post("/proposal/parse", json=markup).json() == {"sections": {"background": "Hola"}}
    res = api.post("/proposal/insert", json={"markup": "", "section_id": "nope", "new_text": "x"})
    assert res.status_code == 422


def test_sync(api, draft, draft_json, doc_date):
    from proposal_engine.services import document_codec
    markup = document_codec.insert_into_section(draft.render(doc_date), "background", "Antecedentes nuevos.")
    res = api.post("/proposal/sync", json={"draft": draft_json, "document_date": DATE, "markup": markup})
    assert res.status_code == 200
    assert res.json()["draft"]["background"] == "Antecedentes nuevos."


def test_save_success(api, draft_json):
    repo = FakeRepo()
    app.dependency_overrides[get_snapshot_repo] = lambda: repo
    res = api.post("/proposal/save", json={"draft": draft_json, "document_date": DATE, "case_id": "case-1"})
    assert res.status_code == 200
    data = res.json()
    assert data["version_number"] == 1
    assert data["snapshot"]["assembledMarkup"].startswith("<section")
    assert repo.saved[0][0] == "case-1"


def test_save_store_unavailable(api, draft_json):
    app.dependency_overrides[get_snapshot_repo] = lambda: FakeRepo(error=SnapshotStoreError("down"))
    res = api.post("/proposal/save", json={"draft": draft_json, "document_date": DATE, "case_id": "case-1"})
    assert res.status_code == 503


def test_versions_and_load_latest(api, draft, draft_json, doc_date):
    repo = FakeRepo()
    app.dependency_overrides[get_snapshot_repo] = lambda: repo
    edited = draft.set_override("transition", "Texto guardado.", document_date=doc_date)
    api.post("/proposal/save", json={"draft": draft_json, "document_date": DATE, "case_id": "case-1"})
    api.post("/proposal/save", json={"draft": edited.model_dump(mode="json"), "document_date": DATE, "case_id": "case-1"})

    versions = api.get("/proposal/versions/case-1").json()["versions"]
    assert [v["version_number"] for v in versions] == [2, 1]

    res = api.post("/proposal/load", json={"draft": draft_json, "document_date": DATE, "case_id": "case-1"})
    assert res.status_code == 200
    assert res.json()["markup"] == edited.render(doc_date)
    assert res.json()["draft"]["overrides"][0]["new_text"] == "Texto guardado."

    res = api.post("/proposal/load", json={"draft": draft_json, "document_date": DATE, "case_id": "case-2"})
    assert res.status_code == 404


def test_versions_store_unavailable(api):
    app.dependency_overrides[get_snapshot_repo] = lambda: FakeRepo(error=SnapshotStoreError("down"))
    assert api.get("/proposal/versions/case-1").status_code == 503


def test_rewrite_then_accept(api, draft_json):
    app.dependency_overrides[get_ai_client] = lambda: FakeAI("Transición reescrita.")
    res = api.post("/ai/rewrite", json={
        "draft": draft_json, "document_date": DATE, "section_id": "transition", "instruction": "más formal",
    })
    assert res.status_code == 200
    data = res.json()
    assert data["text"] == "Transición reescrita."
    assert data["pending"]["section_id"] == "transition"

    res = api.post("/ai/rewrite/accept", json={
        "draft": draft_json, "pending": data["pending"], "new_text": data["text"],
    })
    accepted = res.json()
    assert accepted["accepted"] is True
    ov = accepted["draft"]["overrides"][0]
    assert ov["is_ai_generated"] is True
    assert ov["new_text"] == "Transición reescrita."
    assert ov["instruction"] == "más formal"


def test_rewrite_rate_limited(api, draft_json):
    app.dependency_overrides[get_ai_client] = lambda: FakeAI(error=AIServiceError(RATE_LIMIT_MESSAGE, 429))
    res = api.post("/ai/rewrite", json={
        "draft": draft_json, "document_date": DATE, "section_id": "transition", "instruction": "x",
    })
    assert res.status_code == 429
    assert res.json()["detail"] == RATE_LIMIT_MESSAGE


def test_rewrite_absent_section_is_404(api, draft_json):
    app.dependency_overrides[get_ai_client] = lambda: FakeAI()
    res = api.post("/ai/rewrite", json={
        "draft": draft_json, "document_date": DATE, "section_id": "installments", "instruction": "x",
    })
    assert res.status_code == 404
