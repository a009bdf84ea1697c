# proposal_engine/services/content_assembler.py
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Sequence

from proposal_engine.config import (
    ACCEPTANCE_TEXT,
    CLOSING_FAREWELL,
    DEFAULT_EXCLUSIONS,
    DEFAULT_SERVICE_TYPE,
    HEADING_BACKGROUND,
    HEADING_GUARANTEES,
    HEADING_PRICING,
    INTRO_GREETING,
    PRICING_INTRO,
    PRICING_SCHEME_LEAD,
    SERVICES_INTRO,
    TRANSITION_TEXT,
)
from proposal_engine.models.schemas import (
    ClientInfo,
    FirmSettings,
    GeneratedProposalContent,
    PricingConfig,
    PricingTemplate,
    ServiceSelection,
)
from proposal_engine.models.sections import DocumentSection, SectionId, SectionKind, Slot
from proposal_engine.services import pricing_engine
from proposal_engine.services.override_store import OverrideStore
from proposal_engine.utils.text import last_name, letter_for, normalize_whitespace

logger = logging.getLogger("content_assembler")

SPANISH_MONTHS = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


# -------------------------
# default text per slot
# -------------------------
def format_document_date(city: str, d: date) -> str:
    """"Ciudad de México, a 18 de octubre de 2026." """
    return f"{city}, a {d.day} de {SPANISH_MONTHS[d.month - 1]} de {d.year}."


def letterhead_text(firm: FirmSettings) -> str:
    lines = [firm.name, firm.address, firm.phone, firm.email, firm.website]
    return "\n".join(x for x in lines if x)


def recipient_text(client: ClientInfo) -> str:
    lines: List[str] = []
    contact = client.primary_contact
    if contact and contact.full_name:
        prefix = f"{contact.salutation_prefix} " if contact.salutation_prefix else ""
        lines.append(f"{prefix}{contact.full_name}")
        if contact.position:
            lines.append(contact.position)
    lines.append(client.display_name)
    # legal entities other than the group name itself
    for e in client.entities:
        if e.legal_name and e.legal_name != client.display_name:
            lines.append(e.legal_name)
    lines.append("P R E S E N T E")
    return "\n".join(lines)


def salutation_text(client: ClientInfo, firm: FirmSettings) -> str:
    contact = client.primary_contact
    if contact and contact.full_name:
        prefix = f"{contact.salutation_prefix} " if contact.salutation_prefix else ""
        greeting = f"Estimado {prefix}{last_name(contact.full_name)}:"
    else:
        greeting = "Estimados señores:"
    intro = INTRO_GREETING.format(firm_name=firm.name, service_type=DEFAULT_SERVICE_TYPE)
    return f"{greeting}\n\n{intro}"


def fallback_background(client: ClientInfo) -> str:
    """
    Deterministic background when the user has not written one:
    "ACME es un grupo empresarial del sector Manufactura, integrado por 3 entidades ..."
    """
    sector = f" del sector {client.industry}" if client.industry else ""
    entities = "1 entidad" if client.entity_count == 1 else f"{client.entity_count} entidades"
    employees = "1 colaborador" if client.employee_count == 1 else f"{client.employee_count} colaboradores"
    text = (
        f"{client.display_name} es un grupo empresarial{sector}, integrado por {entities} "
        f"y con una plantilla aproximada de {employees}."
    )
    if client.objective:
        text += f"\n\nSu objetivo principal es {client.objective.rstrip('.')}."
    return text


def service_text(service: ServiceSelection, index: int, content: Optional[GeneratedProposalContent]) -> str:
    generated = content.description_for(service.service_id) if content else None
    body = service.custom_text or (generated.expanded_text if generated else "") or service.text
    head = f"{letter_for(index)}) {service.name}"
    text = f"{head}: {body}" if body else head
    if generated and not service.custom_text:
        if generated.objectives:
            text += "\n\nObjetivos:\n" + "\n".join(f"• {o}" for o in generated.objectives)
        if generated.deliverables:
            text += "\n\nEntregables:\n" + "\n".join(f"• {d}" for d in generated.deliverables)
    return text


def signature_text(firm: FirmSettings) -> str:
    return f"Atentamente,\n\n{firm.name}"


# -------------------------
# assembly
# -------------------------
class _Builder:
    """Collects sections in order, applying overrides and dropping empty ones."""

    def __init__(self, overrides: Optional[OverrideStore]):
        self.overrides = overrides or OverrideStore()
        self.sections: List[DocumentSection] = []

    def add(self, sid: SectionId, text: Optional[str], heading: Optional[str] = None,
            kind: Optional[SectionKind] = None, warning: Optional[str] = None) -> None:
        display = text or ""
        provenance = None
        ov = self.overrides.get(sid)
        if ov is not None:
            display = ov.new_text
            provenance = ov.provenance
        if not normalize_whitespace(display):
            return
        self.sections.append(
            DocumentSection(
                section_id=sid,
                kind=kind or sid.default_kind,
                display_text=display,
                heading=heading,
                warning=warning,
                provenance=provenance,
            )
        )


def assemble(
    client: ClientInfo,
    firm: FirmSettings,
    services: Sequence[ServiceSelection],
    pricing: PricingConfig,
    document_date: date,
    overrides: Optional[OverrideStore] = None,
    background: Optional[str] = None,
    services_narrative: Optional[str] = None,
    pricing_narrative: Optional[str] = None,
    generated_content: Optional[GeneratedProposalContent] = None,
    template: Optional[PricingTemplate] = None,
) -> List[DocumentSection]:
    """
    Build the ordered section list of a proposal.

    Notes:
    - pure: same inputs (document_date included) give the same sections byte for byte
    - an override's new_text replaces the slot's default; overrides for slots that are not
      present in this layout are kept in the store but not shown
    - a saved pricing narrative replaces the generated pricing blocks (intro, lines, summary,
      installments, retainer) and carries the pricing heading itself
    - sections whose text is empty are omitted
    """
    b = _Builder(overrides)
    chosen = pricing_engine.selected(services)
    mode = pricing.mode

    b.add(SectionId.of(Slot.LETTERHEAD), letterhead_text(firm))
    b.add(SectionId.of(Slot.DATE), format_document_date(firm.city, document_date))
    b.add(SectionId.of(Slot.RECIPIENT), recipient_text(client))
    b.add(SectionId.of(Slot.SALUTATION), salutation_text(client, firm))
    b.add(SectionId.of(Slot.BACKGROUND), background or fallback_background(client), heading=HEADING_BACKGROUND)

    # services
    if chosen or services_narrative:
        b.add(SectionId.of(Slot.SERVICES_INTRO), SERVICES_INTRO)
    if services_narrative:
        b.add(SectionId.of(Slot.SERVICES_NARRATIVE), services_narrative)
    else:
        for i, s in enumerate(chosen):
            b.add(SectionId.service(s.service_id), service_text(s, i, generated_content))
    transition = (generated_content.transition_text if generated_content else "") or TRANSITION_TEXT
    b.add(SectionId.of(Slot.TRANSITION), transition)

    # pricing
    if pricing_narrative:
        b.add(SectionId.of(Slot.PRICING_NARRATIVE), pricing_narrative, heading=HEADING_PRICING)
    else:
        _add_pricing_blocks(b, chosen, pricing, client)

    exclusions = firm.disclaimers_text or DEFAULT_EXCLUSIONS
    if mode == "global" and template is not None and template.exclusions_text and not pricing_narrative:
        exclusions = template.exclusions_text
    b.add(SectionId.of(Slot.EXCLUSIONS), exclusions)

    if firm.guarantees_text:
        b.add(SectionId.of(Slot.GUARANTEES), firm.guarantees_text, heading=HEADING_GUARANTEES)

    closing = (generated_content.closing_text if generated_content else "") or firm.closing_text or CLOSING_FAREWELL
    b.add(SectionId.of(Slot.CLOSING), closing)
    b.add(SectionId.of(Slot.SIGNATURE), signature_text(firm))
    b.add(SectionId.of(Slot.ACCEPTANCE), ACCEPTANCE_TEXT)

    logger.debug("assembled %d sections (mode=%s)", len(b.sections), mode)
    return b.sections


def _add_pricing_blocks(b: _Builder, chosen, pricing: PricingConfig, client: ClientInfo) -> None:
    mode = pricing.mode
    check = pricing_engine.validate_installments(pricing.installments)

    intro_at = len(b.sections)
    b.add(SectionId.of(Slot.PRICING_INTRO), f"{PRICING_INTRO}\n\n{PRICING_SCHEME_LEAD}", heading=HEADING_PRICING)
    blocks_from = len(b.sections)

    if mode == "per_service":
        for i, s in enumerate(chosen):
            b.add(SectionId.pricing_service(s.service_id), pricing_engine.service_fee_block(s, i))
        if chosen:
            totals = pricing_engine.compute_totals(chosen)
            b.add(SectionId.of(Slot.PRICING_SUMMARY), pricing_engine.totals_block(totals))
        initial, monthly = _derived_amounts(chosen)
    elif mode == "summed":
        if chosen:
            b.add(SectionId.of(Slot.PRICING_SUMMARY), pricing_engine.summed_block(chosen, pricing.retainer_months))
        initial, monthly = _derived_amounts(chosen)
    else:
        initial, monthly = pricing.initial_payment, pricing.monthly_retainer
        if initial > 0:
            b.add(
                SectionId.of(Slot.PRICING_SUMMARY),
                pricing_engine.global_initial_sentence(initial, pricing.initial_payment_description, client.objective),
            )

    if pricing.installments and initial > 0:
        if mode == "global":
            text = pricing_engine.installments_sentence(pricing.installments)
        else:
            text = pricing_engine.installments_breakdown(initial, pricing.installments)
        b.add(SectionId.of(Slot.INSTALLMENTS), text, warning=check.warning)

    if monthly > 0 and pricing.retainer_months > 0:
        if mode == "global":
            letter = "b" if initial > 0 else "a"
            text = pricing_engine.retainer_sentence(monthly, pricing.retainer_months, letter)
        else:
            text = (
                f"La iguala mensual se cubrirá por un plazo de {pricing.retainer_months} meses "
                f"{pricing_engine.RETAINER_PURPOSE}."
            )
        b.add(SectionId.of(Slot.RETAINER), text)

    # nothing was priced, so the heading and intro would stand alone
    if len(b.sections) == blocks_from:
        del b.sections[intro_at:]


def _derived_amounts(chosen):
    totals = pricing_engine.compute_totals(chosen)
    return totals.one_time, totals.monthly
