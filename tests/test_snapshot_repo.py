import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from proposal_engine.services import snapshot_repo
from proposal_engine.services.snapshot_repo import (
    SnapshotRepository,
    SnapshotStoreError,
    build_snapshot,
    draft_from_snapshot,
)


def _supabase(latest_rows=(), insert_error=None):
    client = MagicMock()
    table = client.table.return_value
    query = table.select.return_value.eq.return_value.order.return_value
    query.limit.return_value.execute.return_value = SimpleNamespace(data=list(latest_rows))
    query.execute.return_value = SimpleNamespace(data=list(latest_rows))
    if insert_error is not None:
        table.insert.return_value.execute.side_effect = insert_error
    else:
        table.insert.return_value.execute.side_effect = (
            lambda: SimpleNamespace(data=[table.insert.call_args.args[0]])
        )
    return client


def test_build_snapshot_keys(draft, doc_date):
    edited = draft.set_override("transition", "Texto.", document_date=doc_date)
    snap = build_snapshot(edited, edited.render(doc_date))
    assert set(snap) == {
        "pricingConfig", "serviceSelections", "overrides", "overrideLog", "assembledMarkup",
        "background", "servicesNarrative", "pricingNarrative", "generatedContent",
    }
    assert snap["overrides"][0]["section_id"] == "transition"
    assert snap["pricingConfig"]["mode"] == "per_service"
    # JSON-ready as is
    json.dumps(snap)


def test_save_appends_next_version(draft, doc_date):
    client = _supabase(latest_rows=[{"version_number": 3}])
    repo = SnapshotRepository(client=client)
    row = repo.save("case-9", build_snapshot(draft, draft.render(doc_date)), created_by="user-1")
    assert row["version_number"] == 4
    client.table.assert_any_call("proposal_versions")
    inserted = client.table.return_value.insert.call_args.args[0]
    assert inserted["case_id"] == "case-9"
    assert inserted["version_number"] == 4
    assert inserted["created_by"] == "user-1"
    assert inserted["content"]["assembledMarkup"].startswith("<section")


def test_first_version_is_one(draft, doc_date):
    repo = SnapshotRepository(client=_supabase())
    assert repo.latest_version_number("case-1") == 0
    assert repo.save("case-1", build_snapshot(draft, ""))["version_number"] == 1


def test_store_failure_raises_snapshot_error(draft):
    repo = SnapshotRepository(client=_supabase(insert_error=ConnectionError("down")))
    with pytest.raises(SnapshotStoreError):
        repo.save("case-1", build_snapshot(draft, ""))


def test_read_failure_raises_snapshot_error():
    client = MagicMock()
    client.table.side_effect = RuntimeError("boom")
    with pytest.raises(SnapshotStoreError):
        SnapshotRepository(client=client).load_latest("case-1")


def test_missing_configuration(monkeypatch):
    def unconfigured():
        raise RuntimeError("SUPABASE_URL is required")

    monkeypatch.setattr(snapshot_repo, "get_supabase", unconfigured)
    with pytest.raises(SnapshotStoreError):
        SnapshotRepository().latest_version_number("case-1")


def test_load_latest_returns_first_row():
    repo = SnapshotRepository(client=_supabase(latest_rows=[{"version_number": 2, "content": {}}]))
    assert repo.load_latest("case-1")["version_number"] == 2
    assert SnapshotRepository(client=_supabase()).load_latest("case-1") is None


def test_list_versions_selects_metadata_newest_first():
    rows = [{"version_number": 2}, {"version_number": 1}]
    client = _supabase(latest_rows=rows)
    assert SnapshotRepository(client=client).list_versions("case-1") == rows
    table = client.table.return_value
    table.select.assert_called_with("id,case_id,version_number,created_at,created_by")
    table.select.return_value.eq.assert_called_with("case_id", "case-1")
    table.select.return_value.eq.return_value.order.assert_called_with("version_number", desc=True)


def test_snapshot_restores_an_equal_document(draft, doc_date):
    edited = (
        draft.select_template("tpl-1")
        .set_override("closing-farewell", "Saludos cordiales.", document_date=doc_date)
        .set_background("Antecedentes.")
    )
    markup = edited.render(doc_date)
    stored = json.loads(json.dumps(build_snapshot(edited, markup)))
    restored = draft_from_snapshot(draft, stored)
    assert restored.render(doc_date) == markup
    assert restored.pricing == edited.pricing
    assert restored.override_log == edited.override_log
