# proposal_engine/routers/pricing.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from proposal_engine.models.schemas import (
    Installment,
    InstallmentAmount,
    InstallmentCheck,
    PricingConfig,
    PricingMode,
    PricingTemplate,
    ServiceSelection,
    Totals,
)
from proposal_engine.services import pricing_engine
from proposal_engine.services.pricing_engine import NarrativePreconditionError
from proposal_engine.utils.money import MAX_AMOUNT

router = APIRouter(prefix="/pricing", tags=["pricing"])
log = logging.getLogger("pricing")


class TotalsRequest(BaseModel):
    services: List[ServiceSelection] = Field(default_factory=list)


class NarrativeRequest(BaseModel):
    mode: PricingMode
    services: List[ServiceSelection] = Field(default_factory=list)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    client_objective: Optional[str] = None
    template: Optional[PricingTemplate] = None


class NarrativeResponse(BaseModel):
    narrative: str
    warnings: List[str] = Field(default_factory=list)


class InstallmentsRequest(BaseModel):
    installments: List[Installment] = Field(default_factory=list)
    amount: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)


class InstallmentsResponse(InstallmentCheck):
    amounts: List[InstallmentAmount] = Field(default_factory=list)


@router.post("/totals", response_model=Totals)
def totals(req: TotalsRequest):
    return pricing_engine.compute_totals(req.services)


@router.post("/narrative", response_model=NarrativeResponse)
def narrative(req: NarrativeRequest):
    try:
        text = pricing_engine.render_narrative(
            req.mode, req.services, req.pricing, client_objective=req.client_objective, template=req.template
        )
    except NarrativePreconditionError as e:
        log.info("narrative refused (mode=%s): %s", req.mode, e)
        raise HTTPException(status_code=422, detail=str(e))
    warnings = []
    check = pricing_engine.validate_installments(req.pricing.installments)
    if check.warning:
        warnings.append(check.warning)
    switch = pricing_engine.mode_switch_warning(req.mode, req.services)
    if switch:
        warnings.append(switch)
    return NarrativeResponse(narrative=text, warnings=warnings)


@router.post("/installments/validate", response_model=InstallmentsResponse)
def validate_installments(req: InstallmentsRequest):
    check = pricing_engine.validate_installments(req.installments)
    amounts = pricing_engine.installment_amounts(req.amount, req.installments) if req.amount is not None else []
    return InstallmentsResponse(**check.model_dump(), amounts=amounts)
