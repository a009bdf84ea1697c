# proposal_engine/routers/proposal.py
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from proposal_engine.deps import get_snapshot_repo
from proposal_engine.models.schemas import SectionOut
from proposal_engine.models.sections import SectionId
from proposal_engine.services import document_codec
from proposal_engine.services.docx_export import export_docx
from proposal_engine.services.proposal_draft import ProposalDraft
from proposal_engine.services.snapshot_repo import SnapshotStoreError, build_snapshot, draft_from_snapshot

router = APIRouter(prefix="/proposal", tags=["proposal"])
logger = logging.getLogger("proposal")


# ---------- request / response bodies ----------
# The API is stateless: the caller sends the whole draft and gets the next one back.

class DraftRequest(BaseModel):
    draft: ProposalDraft
    document_date: date = Field(default_factory=date.today)


class AssembleResponse(BaseModel):
    sections: List[SectionOut]
    markup: str
    warnings: List[str] = Field(default_factory=list)


class ParseRequest(BaseModel):
    markup: str


class InsertRequest(BaseModel):
    markup: str = ""
    section_id: str
    new_text: str


class SyncRequest(DraftRequest):
    markup: str


class OverrideRequest(DraftRequest):
    section_id: str
    new_text: str
    is_ai_generated: bool = False
    instruction: Optional[str] = None


class RestoreRequest(DraftRequest):
    section_id: str


class ExportRequest(DraftRequest):
    title: Optional[str] = None


class SaveRequest(DraftRequest):
    case_id: str
    created_by: Optional[str] = None


class LoadRequest(DraftRequest):
    case_id: str


class DraftResponse(BaseModel):
    draft: ProposalDraft
    markup: str
    warnings: List[str] = Field(default_factory=list)


def _draft_response(draft: ProposalDraft, when: date) -> DraftResponse:
    return DraftResponse(draft=draft, markup=draft.render(when), warnings=draft.warnings)


def _known_section(section_id: str) -> SectionId:
    sid = SectionId.parse(section_id)
    if sid is None:
        raise HTTPException(status_code=422, detail=f"Unknown section id: {section_id}")
    return sid


# ---------- routes ----------

@router.post("/assemble", response_model=AssembleResponse)
def assemble(req: DraftRequest):
    sections = req.draft.assemble(req.document_date)
    return AssembleResponse(
        sections=[SectionOut(**s.to_dict()) for s in sections],
        markup=document_codec.render(sections),
        warnings=req.draft.warnings,
    )


@router.post("/parse")
def parse(req: ParseRequest) -> Dict[str, Dict[str, str]]:
    return {"sections": document_codec.parse(req.markup)}


@router.post("/insert")
def insert(req: InsertRequest) -> Dict[str, str]:
    sid = _known_section(req.section_id)
    return {"markup": document_codec.insert_into_section(req.markup, sid, req.new_text)}


@router.post("/sync", response_model=DraftResponse)
def sync(req: SyncRequest):
    draft = req.draft.sync_from_markup(req.markup, req.document_date)
    return _draft_response(draft, req.document_date)


@router.post("/overrides", response_model=DraftResponse)
def set_override(req: OverrideRequest):
    sid = _known_section(req.section_id)
    draft = req.draft.set_override(
        sid, req.new_text,
        is_ai_generated=req.is_ai_generated,
        instruction=req.instruction,
        document_date=req.document_date,
    )
    return _draft_response(draft, req.document_date)


@router.post("/overrides/restore", response_model=DraftResponse)
def restore_override(req: RestoreRequest):
    sid = _known_section(req.section_id)
    return _draft_response(req.draft.restore_override(sid), req.document_date)


@router.post("/export/docx")
def export(req: ExportRequest):
    title = req.title or req.draft.client.display_name
    try:
        path = export_docx(req.draft.assemble(req.document_date), title)
    except OSError as e:
        logger.exception("DOCX export failed")
        raise HTTPException(status_code=500, detail=f"DOCX export failed: {e}")
    return FileResponse(
        path,
        media_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        filename=path.rsplit("/", 1)[-1],
    )


@router.post("/save")
def save(req: SaveRequest, repo=Depends(get_snapshot_repo)):
    markup = req.draft.render(req.document_date)
    snapshot = build_snapshot(req.draft, markup)
    try:
        row = repo.save(req.case_id, snapshot, created_by=req.created_by)
    except SnapshotStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"case_id": req.case_id, "version_number": row.get("version_number"), "snapshot": snapshot}


@router.get("/versions/{case_id}")
def list_versions(case_id: str, repo=Depends(get_snapshot_repo)):
    try:
        versions = repo.list_versions(case_id)
    except SnapshotStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"case_id": case_id, "versions": versions}


@router.post("/load", response_model=DraftResponse)
def load_latest(req: LoadRequest, repo=Depends(get_snapshot_repo)):
    """Latest saved version of a case, restored onto the client/firm/catalog the caller sends."""
    try:
        row = repo.load_latest(req.case_id)
    except SnapshotStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not row:
        raise HTTPException(status_code=404, detail=f"No saved versions for case {req.case_id}")
    draft = draft_from_snapshot(req.draft, row.get("content") or {})
    return _draft_response(draft, req.document_date)
