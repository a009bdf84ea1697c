# proposal_engine/services/pricing_engine.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from proposal_engine.config import (
    DEFAULT_CLIENT_OBJECTIVE,
    DEFAULT_INITIAL_PAYMENT_DESCRIPTION,
    PRICING_INTRO,
    PRICING_SCHEME_LEAD,
)
from proposal_engine.models.schemas import (
    Installment,
    InstallmentAmount,
    InstallmentCheck,
    PricingConfig,
    PricingTemplate,
    ServiceSelection,
    Totals,
)
from proposal_engine.utils.money import format_currency, format_currency_with_words, to_money
from proposal_engine.utils.text import letter_for, natural_join

logger = logging.getLogger("pricing_engine")

SEPARATOR = "─" * 30
SUMMED_LEAD = "Los servicios incluidos en esta propuesta son:"
RETAINER_PURPOSE = (
    "a fin de realizar las labores de ejecución, implementación y acompañamiento de la propuesta"
)


class NarrativePreconditionError(ValueError):
    """Raised when a fee narrative is requested for a state that cannot produce one."""


# ---------- Totals ----------

def selected(services: Iterable[ServiceSelection]) -> List[ServiceSelection]:
    """Selected services in selection (list) order."""
    return [s for s in services or [] if s.is_selected]


def compute_totals(services: Iterable[ServiceSelection]) -> Totals:
    """
    Sum fees of selected services.
    - one_time/both contribute custom_fee, else suggested_fee, else 0
    - monthly/both contribute custom_monthly_fee, else suggested_monthly_fee, else 0
    """
    one_time = Decimal("0.00")
    monthly = Decimal("0.00")
    for s in selected(services):
        if s.charges_initial:
            one_time += s.effective_fee
        if s.charges_monthly:
            monthly += s.effective_monthly_fee
    return Totals(one_time=to_money(one_time), monthly=to_money(monthly))


# ---------- Installments ----------

def validate_installments(installments: Sequence[Installment]) -> InstallmentCheck:
    """
    Installments must add up to 100% to describe the initial payment.
    An empty list is valid (nothing to break down). Violations are warnings, never errors.
    """
    total = sum(int(i.percentage) for i in installments or [])
    if not installments or total == 100:
        return InstallmentCheck(total_percentage=total, is_valid=True)
    return InstallmentCheck(
        total_percentage=total,
        is_valid=False,
        warning=f"Los porcentajes del pago inicial suman {total}% (deben sumar 100%).",
    )


def installment_amounts(amount, installments: Sequence[Installment]) -> List[InstallmentAmount]:
    """Money per installment. Cents are rounded half-up per line, no remainder balancing."""
    base = to_money(amount)
    out: List[InstallmentAmount] = []
    for inst in installments or []:
        value = to_money(base * Decimal(inst.percentage) / Decimal(100))
        out.append(InstallmentAmount(percentage=inst.percentage, description=inst.description, amount=value))
    return out


def installments_sentence(installments: Sequence[Installment]) -> str:
    parts = [f"un {i.percentage}% {i.description}".strip() for i in installments or []]
    if not parts:
        return ""
    return f"Dicho honorario será cubierto {natural_join(parts, 'y')}."


def installments_breakdown(amount, installments: Sequence[Installment]) -> str:
    lines = ["Distribución del pago inicial:"]
    for row in installment_amounts(amount, installments):
        desc = f" {row.description}" if row.description else ""
        lines.append(f"• {row.percentage}%{desc}: {format_currency(row.amount)} + IVA")
    return "\n".join(lines)


# ---------- Narrative building blocks ----------

def service_fee_block(service: ServiceSelection, index: int) -> str:
    """Lettered block for one service in per_service mode: "a) Name" + its fee bullets."""
    lines = [f"{letter_for(index)}) {service.name}"]
    if service.charges_initial and service.effective_fee > 0:
        lines.append(f"• Pago inicial: {format_currency(service.effective_fee)} + IVA")
    if service.charges_monthly and service.effective_monthly_fee > 0:
        lines.append(f"• Iguala mensual: {format_currency(service.effective_monthly_fee)} + IVA")
    return "\n".join(lines)


def totals_block(totals: Totals) -> str:
    lines = [SEPARATOR, "TOTAL:"]
    if totals.one_time > 0 or totals.monthly == 0:
        lines.append(f"• Pago inicial: {format_currency(totals.one_time)} + IVA")
    if totals.monthly > 0:
        lines.append(f"• Iguala mensual: {format_currency(totals.monthly)} + IVA")
    return "\n".join(lines)


def summed_block(services: Sequence[ServiceSelection], retainer_months: int) -> str:
    chosen = selected(services)
    totals = compute_totals(chosen)
    names = "\n".join(f"• {s.name}" for s in chosen)
    total = f"Total: pago inicial de {format_currency(totals.one_time)} + IVA"
    if totals.monthly > 0 and retainer_months > 0:
        total += (
            f"; iguala mensual de {format_currency(totals.monthly)} + IVA "
            f"por un plazo de {retainer_months} meses"
        )
    return f"{SUMMED_LEAD}\n{names}\n\n{PRICING_SCHEME_LEAD}\n{total}"


def global_initial_sentence(amount, description: Optional[str], objective: Optional[str]) -> str:
    desc = description or DEFAULT_INITIAL_PAYMENT_DESCRIPTION
    obj = objective or DEFAULT_CLIENT_OBJECTIVE
    return (
        f"a) Un pago inicial en cantidad de {format_currency_with_words(amount)} "
        f"más IVA correspondiente al {desc} de {obj}."
    )


def retainer_sentence(amount, months: int, letter: str = "b") -> str:
    return (
        f"{letter}) Una iguala mensual en cantidad de {format_currency_with_words(amount)} "
        f"más IVA por un plazo de {months} meses {RETAINER_PURPOSE}."
    )


# ---------- Narrative entry point ----------

def narrative_precondition(mode: str, services: Sequence[ServiceSelection], config: PricingConfig) -> Optional[str]:
    """Refusal message when no narrative can be produced, else None."""
    if mode == "global":
        if to_money(config.initial_payment) == 0 and to_money(config.monthly_retainer) == 0:
            return "Configura al menos un monto (pago inicial o iguala mensual)."
        return None
    if not selected(services):
        return "Selecciona al menos un servicio para generar el texto de honorarios."
    return None


def render_narrative(
    mode: str,
    services: Sequence[ServiceSelection],
    config: PricingConfig,
    client_objective: Optional[str] = None,
    template: Optional[PricingTemplate] = None,
) -> str:
    """
    Default fee text for the three pricing modes.

    per_service: one lettered block per selected service, then a TOTAL block.
    summed:      service names only, then one combined total line.
    global:      formal prose from config.initial_payment / monthly_retainer (amounts spelled out),
                 installment sentence, retainer clause and the template's exclusions verbatim.

    Raises NarrativePreconditionError when narrative_precondition() refuses.
    """
    refusal = narrative_precondition(mode, services, config)
    if refusal:
        raise NarrativePreconditionError(refusal)

    if mode == "per_service":
        chosen = selected(services)
        blocks = [service_fee_block(s, i) for i, s in enumerate(chosen)]
        blocks.append(totals_block(compute_totals(chosen)))
        return "\n\n".join(blocks)

    if mode == "summed":
        return summed_block(services, config.retainer_months)

    if mode == "global":
        initial = to_money(config.initial_payment)
        monthly = to_money(config.monthly_retainer)
        blocks = [PRICING_INTRO, PRICING_SCHEME_LEAD]
        if initial > 0:
            blocks.append(global_initial_sentence(initial, config.initial_payment_description, client_objective))
            sentence = installments_sentence(config.installments)
            if sentence:
                blocks.append(sentence)
        if monthly > 0:
            blocks.append(retainer_sentence(monthly, config.retainer_months, "b" if initial > 0 else "a"))
        if template is not None and template.exclusions_text:
            blocks.append(template.exclusions_text)
        return "\n\n".join(blocks)

    raise ValueError(f"unknown pricing mode: {mode!r}")


# ---------- Warnings ----------

def mode_switch_warning(mode: str, services: Sequence[ServiceSelection]) -> Optional[str]:
    """Global mode ignores per-service fees; name the services whose custom fees get ignored."""
    if mode != "global":
        return None
    ignored = [s.name for s in selected(services) if s.has_custom_fees]
    if not ignored:
        return None
    return (
        "En modo global se usan los montos globales; se ignoran los honorarios personalizados de "
        f"{natural_join(ignored, 'y')}."
    )


def pricing_warnings(draft) -> List[str]:
    """Soft warnings for a draft (anything exposing .pricing and .services)."""
    warnings: List[str] = []
    check = validate_installments(draft.pricing.installments)
    if check.warning:
        warnings.append(check.warning)
    switch = mode_switch_warning(draft.pricing.mode, draft.services)
    if switch:
        warnings.append(switch)
    if warnings:
        logger.debug("pricing warnings: %s", warnings)
    return warnings
