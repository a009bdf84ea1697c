# proposal_engine/services/pending_rewrite.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from proposal_engine.models.schemas import RewriteContext, TextOverride
from proposal_engine.models.sections import SectionId, section_key
from proposal_engine.services.proposal_draft import ProposalDraft

logger = logging.getLogger("pending_rewrite")


@dataclass(frozen=True)
class PendingRewrite:
    """
    An AI rewrite in flight, bound to what the section looked like when it was requested.
    The result is only applied if the section is still in that state.
    """
    section_id: str
    snapshot_text: str
    snapshot_override: Optional[TextOverride]
    instruction: str
    document_date: date

    @classmethod
    def capture(cls, draft: ProposalDraft, section_id: "str | SectionId", instruction: str,
                document_date: Optional[date] = None) -> "PendingRewrite":
        key = section_key(section_id)
        when = document_date or date.today()
        text = draft.section_text(key, when)
        if text is None:
            raise KeyError(f"section not present in document: {key}")
        return cls(
            section_id=key,
            snapshot_text=text,
            snapshot_override=draft.store.get(key),
            instruction=instruction,
            document_date=when,
        )

    def is_current(self, draft: ProposalDraft) -> bool:
        return (
            draft.store.get(self.section_id) == self.snapshot_override
            and draft.section_text(self.section_id, self.document_date) == self.snapshot_text
        )


def accept(draft: ProposalDraft, pending: PendingRewrite, new_text: str) -> ProposalDraft:
    """
    Apply an AI result as an override. Stale results (the section changed while the
    request was in flight) are dropped and the draft comes back unchanged.
    """
    if not pending.is_current(draft):
        logger.warning("dropping stale AI rewrite for section %s", pending.section_id)
        return draft
    return draft.set_override(
        pending.section_id,
        new_text,
        is_ai_generated=True,
        instruction=pending.instruction,
        document_date=pending.document_date,
    )


async def run_rewrite(draft: ProposalDraft, section_id: "str | SectionId", instruction: str, client,
                      document_date: Optional[date] = None,
                      timeout: Optional[float] = None) -> Tuple[PendingRewrite, str]:
    """Snapshot the section, await the AI collaborator, hand back (pending, text). The draft is not touched."""
    pending = PendingRewrite.capture(draft, section_id, instruction, document_date)
    context = RewriteContext(
        client_name=draft.client.display_name,
        industry=draft.client.industry,
        section_type=SectionId.parse(pending.section_id).slot.value,
    )
    text = await client.rewrite(pending.snapshot_text, instruction, context, timeout=timeout)
    return pending, text
