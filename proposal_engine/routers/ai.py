# proposal_engine/routers/ai.py
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from proposal_engine.config import get_settings
from proposal_engine.deps import get_ai_client
from proposal_engine.models.schemas import GeneratedProposalContent, TextOverride
from proposal_engine.models.sections import SectionId
from proposal_engine.services import pending_rewrite
from proposal_engine.services.ai_client import AIServiceError, TemplateBlock
from proposal_engine.services.proposal_draft import ProposalDraft

router = APIRouter(prefix="/ai", tags=["ai"])
logger = logging.getLogger("ai")

# Upstream statuses passed through as-is; anything else is a bad gateway.
_PASSTHROUGH = {400, 402, 429, 503, 504}


def _http_error(e: AIServiceError) -> HTTPException:
    status = e.status_code if e.status_code in _PASSTHROUGH else 502
    return HTTPException(status_code=status, detail=e.message)


class PendingRewriteModel(BaseModel):
    section_id: str
    snapshot_text: str
    snapshot_override: Optional[TextOverride] = None
    instruction: str
    document_date: date

    @classmethod
    def of(cls, p: pending_rewrite.PendingRewrite) -> "PendingRewriteModel":
        return cls(
            section_id=p.section_id,
            snapshot_text=p.snapshot_text,
            snapshot_override=p.snapshot_override,
            instruction=p.instruction,
            document_date=p.document_date,
        )

    def to_pending(self) -> pending_rewrite.PendingRewrite:
        return pending_rewrite.PendingRewrite(
            section_id=self.section_id,
            snapshot_text=self.snapshot_text,
            snapshot_override=self.snapshot_override,
            instruction=self.instruction,
            document_date=self.document_date,
        )


class RewriteRequest(BaseModel):
    draft: ProposalDraft
    section_id: str
    instruction: str
    document_date: date = Field(default_factory=date.today)


class RewriteResponse(BaseModel):
    pending: PendingRewriteModel
    text: str


class AcceptRequest(BaseModel):
    draft: ProposalDraft
    pending: PendingRewriteModel
    new_text: str


class AcceptResponse(BaseModel):
    draft: ProposalDraft
    accepted: bool


class GenerateRequest(BaseModel):
    case_id: str
    mode: Literal["template", "freeform"]
    draft: Optional[ProposalDraft] = None
    blocks: List[TemplateBlock] = Field(default_factory=list)


class GenerateResponse(BaseModel):
    contents: Dict[str, str] = Field(default_factory=dict)
    errors: Dict[str, str] = Field(default_factory=dict)
    content: Optional[GeneratedProposalContent] = None
    draft: Optional[ProposalDraft] = None


@router.post("/rewrite", response_model=RewriteResponse)
async def rewrite(req: RewriteRequest, client=Depends(get_ai_client)):
    """Ask for a rewrite of one section. The draft is not changed; accept it with /ai/rewrite/accept."""
    if SectionId.parse(req.section_id) is None:
        raise HTTPException(status_code=422, detail=f"Unknown section id: {req.section_id}")
    try:
        pending, text = await pending_rewrite.run_rewrite(
            req.draft, req.section_id, req.instruction, client,
            document_date=req.document_date,
            timeout=get_settings().ai_timeout_seconds,
        )
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AIServiceError as e:
        logger.warning("rewrite failed for %s: %s", req.section_id, e.message)
        raise _http_error(e)
    return RewriteResponse(pending=PendingRewriteModel.of(pending), text=text)


@router.post("/rewrite/accept", response_model=AcceptResponse)
def accept_rewrite(req: AcceptRequest):
    draft = pending_rewrite.accept(req.draft, req.pending.to_pending(), req.new_text)
    return AcceptResponse(draft=draft, accepted=draft is not req.draft)


@router.post("/generate-content", response_model=GenerateResponse)
async def generate_content(req: GenerateRequest, client=Depends(get_ai_client)):
    draft = req.draft
    try:
        result = await client.generate_content(
            req.case_id,
            req.mode,
            client=draft.client if draft else None,
            services=draft.services if draft else (),
            background=draft.background if draft else None,
            blocks=req.blocks,
            timeout=get_settings().ai_timeout_seconds,
        )
    except AIServiceError as e:
        logger.warning("content generation failed for case %s: %s", req.case_id, e.message)
        raise _http_error(e)

    if req.mode == "template":
        return GenerateResponse(contents=result.contents, errors=result.errors)
    return GenerateResponse(content=result, draft=draft.apply_generated_content(result) if draft else None)
