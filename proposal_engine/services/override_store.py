# proposal_engine/services/override_store.py
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from proposal_engine.models.schemas import OverrideEvent, TextOverride, utcnow
from proposal_engine.models.sections import SectionId, section_key

logger = logging.getLogger("override_store")


class OverrideStore:
    """
    Immutable map section id -> TextOverride plus an ordered audit log.

    Rules:
    - at most one override per section; set() replaces, never chains
    - a replacement keeps the first original_text, so restore always returns the generated text
    - restore() on a section without override is a no-op (same store, no log entry)
    """

    __slots__ = ("_entries", "_log")

    def __init__(self, entries: Optional[Dict[str, TextOverride]] = None, log: Iterable[OverrideEvent] = ()):
        self._entries: Dict[str, TextOverride] = dict(entries or {})
        self._log: Tuple[OverrideEvent, ...] = tuple(log)

    @classmethod
    def from_overrides(cls, overrides: Iterable[TextOverride], log: Iterable[OverrideEvent] = ()) -> "OverrideStore":
        # replayed oldest first so a later entry for the same section wins
        store: Dict[str, TextOverride] = {}
        for ov in sorted(overrides or [], key=lambda o: o.timestamp):
            prior = store.get(ov.section_id)
            if prior is not None and prior.original_text != ov.original_text:
                ov = ov.model_copy(update={"original_text": prior.original_text})
            store[ov.section_id] = ov
        return cls(store, log)

    def set(self, override: TextOverride) -> "OverrideStore":
        prior = self._entries.get(override.section_id)
        if prior is not None:
            override = override.model_copy(update={"original_text": prior.original_text})
        entries = dict(self._entries)
        entries[override.section_id] = override
        event = OverrideEvent(
            action="set",
            section_id=override.section_id,
            is_ai_generated=override.is_ai_generated,
            instruction=override.instruction,
            timestamp=override.timestamp,
        )
        logger.info("override set section=%s ai=%s", override.section_id, override.is_ai_generated)
        return OverrideStore(entries, self._log + (event,))

    def get(self, section_id: "str | SectionId") -> Optional[TextOverride]:
        sid = SectionId.parse(section_id)
        if sid is None:
            return None
        return self._entries.get(str(sid))

    def restore(self, section_id: "str | SectionId") -> "OverrideStore":
        key = section_key(section_id)
        prior = self._entries.get(key)
        if prior is None:
            return self
        entries = {k: v for k, v in self._entries.items() if k != key}
        event = OverrideEvent(action="restore", section_id=key, is_ai_generated=prior.is_ai_generated, timestamp=utcnow())
        logger.info("override restored section=%s", key)
        return OverrideStore(entries, self._log + (event,))

    def list(self) -> List[TextOverride]:
        """Newest first; ties broken by section id so the order is stable."""
        by_id = sorted(self._entries.values(), key=lambda o: o.section_id)
        return sorted(by_id, key=lambda o: o.timestamp, reverse=True)

    def count(self) -> int:
        return len(self._entries)

    @property
    def log(self) -> Tuple[OverrideEvent, ...]:
        return self._log

    def __contains__(self, section_id) -> bool:
        return self.get(section_id) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, OverrideStore):
            return NotImplemented
        return self._entries == other._entries and self._log == other._log

    def __repr__(self) -> str:
        return f"OverrideStore(sections={sorted(self._entries)}, events={len(self._log)})"
