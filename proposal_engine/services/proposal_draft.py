# proposal_engine/services/proposal_draft.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from proposal_engine.models.schemas import (
    ClientInfo,
    FirmSettings,
    GeneratedProposalContent,
    Installment,
    OverrideEvent,
    PricingConfig,
    PricingMode,
    PricingTemplate,
    ServiceSelection,
    TextOverride,
    utcnow,
)
from proposal_engine.models.sections import DocumentSection, SectionId, SectionKind, Slot
from proposal_engine.services import content_assembler, document_codec, pricing_engine
from proposal_engine.services.override_store import OverrideStore
from proposal_engine.utils.money import to_money
from proposal_engine.utils.text import normalize_whitespace

logger = logging.getLogger("proposal_draft")

# Slots whose edited text flows back into structured fields instead of becoming overrides.
_SYNCED_FIELDS = {
    Slot.BACKGROUND: "background",
    Slot.SERVICES_NARRATIVE: "services_narrative",
    Slot.PRICING_NARRATIVE: "pricing_narrative",
}


class ProposalDraft(BaseModel):
    """
    The whole editable state of one proposal as a single immutable value.
    Every transition returns a new draft; nothing is mutated in place.
    """
    model_config = ConfigDict(frozen=True)

    client: ClientInfo
    firm: FirmSettings = Field(default_factory=FirmSettings)
    services: Tuple[ServiceSelection, ...] = ()
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    templates: Tuple[PricingTemplate, ...] = ()
    background: str = ""
    services_narrative: Optional[str] = None
    pricing_narrative: Optional[str] = None
    generated_content: Optional[GeneratedProposalContent] = None
    overrides: Tuple[TextOverride, ...] = ()
    override_log: Tuple[OverrideEvent, ...] = ()

    # ---------- derived ----------
    @property
    def store(self) -> OverrideStore:
        return OverrideStore({o.section_id: o for o in self.overrides}, self.override_log)

    @property
    def selected_template(self) -> Optional[PricingTemplate]:
        tid = self.pricing.selected_template_id
        if tid is None:
            return None
        return next((t for t in self.templates if t.id == tid), None)

    @property
    def warnings(self) -> List[str]:
        return pricing_engine.pricing_warnings(self)

    def _service(self, service_id: str) -> ServiceSelection:
        for s in self.services:
            if s.service_id == str(service_id):
                return s
        raise KeyError(f"unknown service: {service_id}")

    def _with_store(self, store: OverrideStore) -> "ProposalDraft":
        return self.model_copy(update={"overrides": tuple(store.list()), "override_log": store.log})

    def _with_services(self, services: Tuple[ServiceSelection, ...]) -> "ProposalDraft":
        update: Dict[str, Any] = {"services": services}
        if self.pricing.mode != "global":
            totals = pricing_engine.compute_totals(services)
            update["pricing"] = self.pricing.model_copy(
                update={"initial_payment": totals.one_time, "monthly_retainer": totals.monthly}
            )
        return self.model_copy(update=update)

    # ---------- services ----------
    def toggle_service(self, service_id: str) -> "ProposalDraft":
        target = self._service(service_id)
        services = tuple(
            s.model_copy(update={"is_selected": not s.is_selected}) if s is target else s
            for s in self.services
        )
        return self._with_services(services)

    def update_service(self, service_id: str, **changes: Any) -> "ProposalDraft":
        """custom_text / custom_fee / custom_monthly_fee; None clears a custom value."""
        allowed = {"custom_text", "custom_fee", "custom_monthly_fee"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"cannot update service fields: {sorted(unknown)}")
        target = self._service(service_id)
        for key in ("custom_fee", "custom_monthly_fee"):
            if changes.get(key) is not None:
                changes[key] = to_money(changes[key])
        updated = ServiceSelection.model_validate({**target.model_dump(), **changes})
        services = tuple(updated if s is target else s for s in self.services)
        return self._with_services(services)

    # ---------- pricing ----------
    def set_pricing_mode(self, mode: PricingMode) -> "ProposalDraft":
        if mode == self.pricing.mode:
            return self
        update: Dict[str, Any] = {"mode": mode}
        if self.pricing.mode == "global":
            # leaving global: figures come from services again, the template no longer applies
            totals = pricing_engine.compute_totals(self.services)
            update.update(initial_payment=totals.one_time, monthly_retainer=totals.monthly, selected_template_id=None)
        logger.info("pricing mode %s -> %s", self.pricing.mode, mode)
        return self.model_copy(update={"pricing": self.pricing.model_copy(update=update)})

    def set_pricing_amounts(self, initial_payment=None, monthly_retainer=None) -> "ProposalDraft":
        """Typing a figure by hand means global pricing; any selected template is dropped."""
        update: Dict[str, Any] = {"mode": "global", "selected_template_id": None}
        if initial_payment is not None:
            update["initial_payment"] = to_money(initial_payment)
        if monthly_retainer is not None:
            update["monthly_retainer"] = to_money(monthly_retainer)
        return self.model_copy(update={"pricing": self.pricing.model_copy(update=update)})

    def set_retainer_months(self, months: int) -> "ProposalDraft":
        if months < 0:
            raise ValueError("retainer_months must be >= 0")
        return self.model_copy(update={"pricing": self.pricing.model_copy(update={"retainer_months": int(months)})})

    def set_installments(self, installments) -> "ProposalDraft":
        items = tuple(i if isinstance(i, Installment) else Installment.model_validate(i) for i in installments or [])
        return self.model_copy(update={"pricing": self.pricing.model_copy(update={"installments": items})})

    def set_initial_payment_description(self, description: str) -> "ProposalDraft":
        return self.model_copy(
            update={"pricing": self.pricing.model_copy(update={"initial_payment_description": description})}
        )

    def select_template(self, template_id: str) -> "ProposalDraft":
        template = next((t for t in self.templates if t.id == str(template_id)), None)
        if template is None:
            raise KeyError(f"unknown pricing template: {template_id}")
        pricing = self.pricing.model_copy(update={
            "mode": "global",
            "initial_payment": to_money(template.initial_payment),
            "monthly_retainer": to_money(template.monthly_retainer),
            "retainer_months": template.retainer_months,
            "installments": template.installments or self.pricing.installments,
            "selected_template_id": template.id,
        })
        return self.model_copy(update={"pricing": pricing})

    def generate_pricing_narrative(self) -> "ProposalDraft":
        """Store the default fee text for the current mode as the editable pricing narrative."""
        text = pricing_engine.render_narrative(
            self.pricing.mode, self.services, self.pricing,
            client_objective=self.client.objective, template=self.selected_template,
        )
        return self.model_copy(update={"pricing_narrative": text})

    # ---------- text ----------
    def set_background(self, text: str) -> "ProposalDraft":
        return self.model_copy(update={"background": text or ""})

    def set_services_narrative(self, text: Optional[str]) -> "ProposalDraft":
        return self.model_copy(update={"services_narrative": text or None})

    def set_pricing_narrative(self, text: Optional[str]) -> "ProposalDraft":
        return self.model_copy(update={"pricing_narrative": text or None})

    def apply_generated_content(self, content: GeneratedProposalContent) -> "ProposalDraft":
        if content.generated_at is None:
            content = content.model_copy(update={"generated_at": utcnow()})
        return self.model_copy(update={"generated_content": content})

    # ---------- overrides ----------
    def section_text(self, section_id: "str | SectionId", document_date: Optional[date] = None) -> Optional[str]:
        """Current display text of one section, None when the section is not in the document."""
        key = str(SectionId.parse(section_id))
        for s in self.assemble(document_date or date.today()):
            if s.key == key:
                return s.display_text
        return None

    def default_text(self, section_id: "str | SectionId", document_date: Optional[date] = None) -> Optional[str]:
        """Generated text of a section with its override ignored."""
        sid = SectionId.parse(section_id)
        if sid is None:
            return None
        bare = self._with_store(self.store.restore(sid)) if sid in self.store else self
        return bare.section_text(sid, document_date)

    def set_override(
        self,
        section_id: "str | SectionId",
        new_text: str,
        is_ai_generated: bool = False,
        instruction: Optional[str] = None,
        original_text: Optional[str] = None,
        document_date: Optional[date] = None,
    ) -> "ProposalDraft":
        sid = SectionId.parse(section_id)
        if sid is None:
            raise ValueError(f"unknown section id: {section_id!r}")
        if original_text is None:
            original_text = self.default_text(sid, document_date) or ""
        override = TextOverride(
            section_id=str(sid),
            original_text=original_text,
            new_text=new_text,
            is_ai_generated=is_ai_generated,
            instruction=instruction,
        )
        return self._with_store(self.store.set(override))

    def restore_override(self, section_id: "str | SectionId") -> "ProposalDraft":
        store = self.store
        restored = store.restore(section_id)
        if restored is store:
            return self
        return self._with_store(restored)

    # ---------- document ----------
    def assemble(self, document_date: date) -> List[DocumentSection]:
        return content_assembler.assemble(
            client=self.client,
            firm=self.firm,
            services=self.services,
            pricing=self.pricing,
            document_date=document_date,
            overrides=self.store,
            background=self.background or None,
            services_narrative=self.services_narrative,
            pricing_narrative=self.pricing_narrative,
            generated_content=self.generated_content,
            template=self.selected_template,
        )

    def render(self, document_date: date) -> str:
        return document_codec.render(self.assemble(document_date))

    def sync_from_markup(self, markup: str, document_date: date) -> "ProposalDraft":
        """
        Pull edited text back into the draft without any AI call.
        - background / services narrative / pricing narrative go to their fields
        - other editable sections whose text changed become manual overrides
        - fixed and generated sections, and sections missing from the markup, are left alone
        """
        parsed = document_codec.parse(markup)
        draft = self
        for section in self.assemble(document_date):
            if section.key not in parsed:
                continue
            edited = parsed[section.key]
            if edited == normalize_whitespace(section.display_text):
                continue
            field = _SYNCED_FIELDS.get(section.section_id.slot)
            if field and draft.store.get(section.section_id) is None:
                draft = draft.model_copy(update={field: edited})
            elif section.kind == SectionKind.EDITABLE:
                draft = draft.set_override(section.section_id, edited, document_date=document_date)
            else:
                logger.debug("ignoring edit to %s section %s", section.kind.value, section.key)
        return draft
