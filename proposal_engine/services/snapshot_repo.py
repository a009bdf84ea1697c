# proposal_engine/services/snapshot_repo.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from proposal_engine.config import get_settings
from proposal_engine.deps import get_supabase
from proposal_engine.models.schemas import (
    GeneratedProposalContent,
    OverrideEvent,
    PricingConfig,
    ServiceSelection,
    TextOverride,
)
from proposal_engine.services.proposal_draft import ProposalDraft

logger = logging.getLogger("snapshot_repo")


class SnapshotStoreError(Exception):
    """The version store could not be reached or rejected the request."""


# -----------------------------------------------------------------------------
# Snapshot <-> draft
# -----------------------------------------------------------------------------
def build_snapshot(draft: ProposalDraft, markup: str) -> Dict[str, Any]:
    """
    JSON-ready version content. Overrides are stored newest first, the log oldest first.
    Client and firm data live in their own tables and are not part of a version.
    """
    return {
        "pricingConfig": draft.pricing.model_dump(mode="json"),
        "serviceSelections": [s.model_dump(mode="json") for s in draft.services],
        "overrides": [o.model_dump(mode="json") for o in draft.store.list()],
        "overrideLog": [e.model_dump(mode="json") for e in draft.override_log],
        "assembledMarkup": markup,
        "background": draft.background,
        "servicesNarrative": draft.services_narrative,
        "pricingNarrative": draft.pricing_narrative,
        "generatedContent": (
            draft.generated_content.model_dump(mode="json") if draft.generated_content else None
        ),
    }


def draft_from_snapshot(base: ProposalDraft, snapshot: Dict[str, Any]) -> ProposalDraft:
    """Lay a stored version over a draft that already carries client, firm and templates."""
    update: Dict[str, Any] = {}
    if snapshot.get("pricingConfig") is not None:
        update["pricing"] = PricingConfig.model_validate(snapshot["pricingConfig"])
    if snapshot.get("serviceSelections") is not None:
        update["services"] = tuple(ServiceSelection.model_validate(s) for s in snapshot["serviceSelections"])
    update["overrides"] = tuple(TextOverride.model_validate(o) for o in snapshot.get("overrides") or [])
    update["override_log"] = tuple(OverrideEvent.model_validate(e) for e in snapshot.get("overrideLog") or [])
    update["background"] = snapshot.get("background") or ""
    update["services_narrative"] = snapshot.get("servicesNarrative")
    update["pricing_narrative"] = snapshot.get("pricingNarrative")
    gc = snapshot.get("generatedContent")
    update["generated_content"] = GeneratedProposalContent.model_validate(gc) if gc else None
    return base.model_copy(update=update)


# -----------------------------------------------------------------------------
# Repository
# -----------------------------------------------------------------------------
class SnapshotRepository:
    """
    proposal_versions table: (case_id, version_number, content, created_by).
    Versions only grow; saving never rewrites an earlier row (last write wins on read).
    """

    def __init__(self, client=None, table: Optional[str] = None):
        self._client = client
        self.table = table or get_settings().snapshot_table

    @property
    def client(self):
        if self._client is None:
            try:
                self._client = get_supabase()
            except RuntimeError as e:
                raise SnapshotStoreError(str(e)) from e
        return self._client

    def latest_version_number(self, case_id: str) -> int:
        rows = self._select(case_id, limit=1, columns="version_number")
        return int(rows[0]["version_number"]) if rows else 0

    def save(self, case_id: str, snapshot: Dict[str, Any], created_by: Optional[str] = None) -> Dict[str, Any]:
        version = self.latest_version_number(case_id) + 1
        row = {
            "case_id": case_id,
            "version_number": version,
            "content": snapshot,
            "created_by": created_by,
        }
        try:
            res = self.client.table(self.table).insert(row).execute()
        except SnapshotStoreError:
            raise
        except Exception as e:
            logger.exception("Failed to save version %s for case %s", version, case_id)
            raise SnapshotStoreError(f"could not save proposal version: {e}") from e
        logger.info("saved version %s for case %s", version, case_id)
        data = getattr(res, "data", None) or [row]
        return data[0]

    def load_latest(self, case_id: str) -> Optional[Dict[str, Any]]:
        rows = self._select(case_id, limit=1)
        return rows[0] if rows else None

    def list_versions(self, case_id: str) -> List[Dict[str, Any]]:
        return self._select(case_id, columns="id,case_id,version_number,created_at,created_by")

    def _select(self, case_id: str, limit: Optional[int] = None, columns: str = "*") -> List[Dict[str, Any]]:
        try:
            q = (
                self.client.table(self.table)
                .select(columns)
                .eq("case_id", case_id)
                .order("version_number", desc=True)
            )
            if limit:
                q = q.limit(limit)
            res = q.execute()
        except SnapshotStoreError:
            raise
        except Exception as e:
            logger.exception("Failed to read versions for case %s", case_id)
            raise SnapshotStoreError(f"could not read proposal versions: {e}") from e
        return list(getattr(res, "data", None) or [])
