# proposal_engine/models/sections.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SectionKind(str, Enum):
    FIXED = "fixed"          # boilerplate and letter furniture
    GENERATED = "generated"  # derived from pricing/service data
    EDITABLE = "editable"    # prose the user is expected to edit or rewrite


class Slot(str, Enum):
    """
    Logical slots of a proposal, declared in document order.
    Slots in PER_SERVICE_SLOTS repeat once per selected service.
    """
    LETTERHEAD = "letterhead"
    DATE = "date"
    RECIPIENT = "recipient"
    SALUTATION = "salutation"
    BACKGROUND = "background"
    SERVICES_INTRO = "services-intro"
    SERVICE = "service"
    SERVICES_NARRATIVE = "services-narrative"
    TRANSITION = "transition"
    PRICING_INTRO = "pricing-intro"
    PRICING_SERVICE = "pricing-service"
    PRICING_SUMMARY = "pricing-summary"
    PRICING_NARRATIVE = "pricing-narrative"
    INSTALLMENTS = "installments"
    RETAINER = "retainer"
    EXCLUSIONS = "exclusions"
    GUARANTEES = "guarantees"
    CLOSING = "closing-farewell"
    SIGNATURE = "signature"
    ACCEPTANCE = "acceptance"


PER_SERVICE_SLOTS = (Slot.PRICING_SERVICE, Slot.SERVICE)  # longest prefix first
SLOT_ORDER = {slot: i for i, slot in enumerate(Slot)}

DEFAULT_KINDS = {
    Slot.LETTERHEAD: SectionKind.FIXED,
    Slot.DATE: SectionKind.FIXED,
    Slot.RECIPIENT: SectionKind.FIXED,
    Slot.SALUTATION: SectionKind.EDITABLE,
    Slot.BACKGROUND: SectionKind.EDITABLE,
    Slot.SERVICES_INTRO: SectionKind.FIXED,
    Slot.SERVICE: SectionKind.EDITABLE,
    Slot.SERVICES_NARRATIVE: SectionKind.EDITABLE,
    Slot.TRANSITION: SectionKind.EDITABLE,
    Slot.PRICING_INTRO: SectionKind.EDITABLE,
    Slot.PRICING_SERVICE: SectionKind.GENERATED,
    Slot.PRICING_SUMMARY: SectionKind.GENERATED,
    Slot.PRICING_NARRATIVE: SectionKind.EDITABLE,
    Slot.INSTALLMENTS: SectionKind.GENERATED,
    Slot.RETAINER: SectionKind.GENERATED,
    Slot.EXCLUSIONS: SectionKind.EDITABLE,
    Slot.GUARANTEES: SectionKind.EDITABLE,
    Slot.CLOSING: SectionKind.EDITABLE,
    Slot.SIGNATURE: SectionKind.FIXED,
    Slot.ACCEPTANCE: SectionKind.FIXED,
}


@dataclass(frozen=True)
class SectionId:
    """
    Typed section address. str(SectionId) is the stable wire form used by overrides,
    markup anchors and snapshots: "background", "service-<id>", "pricing-service-<id>".
    """
    slot: Slot
    service_id: Optional[str] = None

    def __post_init__(self):
        per_service = self.slot in PER_SERVICE_SLOTS
        if per_service and not self.service_id:
            raise ValueError(f"section slot '{self.slot.value}' needs a service id")
        if not per_service and self.service_id is not None:
            raise ValueError(f"section slot '{self.slot.value}' does not take a service id")

    def __str__(self) -> str:
        if self.service_id is None:
            return self.slot.value
        return f"{self.slot.value}-{self.service_id}"

    @property
    def order(self) -> int:
        return SLOT_ORDER[self.slot]

    @property
    def default_kind(self) -> SectionKind:
        return DEFAULT_KINDS[self.slot]

    @classmethod
    def of(cls, slot: Slot) -> "SectionId":
        return cls(slot)

    @classmethod
    def service(cls, service_id: str) -> "SectionId":
        return cls(Slot.SERVICE, str(service_id))

    @classmethod
    def pricing_service(cls, service_id: str) -> "SectionId":
        return cls(Slot.PRICING_SERVICE, str(service_id))

    @classmethod
    def parse(cls, raw: "str | SectionId | None") -> Optional["SectionId"]:
        """Wire string -> SectionId, None for anything that is not a known section."""
        if isinstance(raw, SectionId):
            return raw
        raw = (raw or "").strip()
        if not raw:
            return None
        try:
            return cls(Slot(raw))
        except ValueError:
            pass
        for slot in PER_SERVICE_SLOTS:
            prefix = slot.value + "-"
            if raw.startswith(prefix) and len(raw) > len(prefix):
                return cls(slot, raw[len(prefix):])
        return None


def section_key(section_id: "str | SectionId") -> str:
    """Validated wire form; raises ValueError for unknown ids."""
    sid = SectionId.parse(section_id)
    if sid is None:
        raise ValueError(f"unknown section id: {section_id!r}")
    return str(sid)


@dataclass(frozen=True)
class DocumentSection:
    section_id: SectionId
    kind: SectionKind
    display_text: str
    heading: Optional[str] = None
    warning: Optional[str] = None
    provenance: Optional[str] = None  # "manual" | "ai" when an override is applied

    @property
    def key(self) -> str:
        return str(self.section_id)

    def to_dict(self) -> dict:
        return {
            "section_id": self.key,
            "kind": self.kind.value,
            "display_text": self.display_text,
            "heading": self.heading,
            "warning": self.warning,
            "provenance": self.provenance,
        }
