# proposal_engine/models/schemas.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from proposal_engine.config import get_settings
from proposal_engine.models.sections import section_key
from proposal_engine.utils.money import MAX_AMOUNT, to_money

# ---------- Shared literals ----------
#
# Notes:
# - Draft-state models are frozen: transitions build new values with model_copy(update=...).
# - Collections inside frozen models are tuples so nothing can be appended in place.
# - Money is Decimal end to end; to_money() quantizes to cents wherever a figure is derived.
#

FeeType = Literal["one_time", "monthly", "both"]
PricingMode = Literal["per_service", "summed", "global"]

AUTO_SELECT_CONFIDENCE = 70


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ---------- Services ----------

class ServiceSelection(_Frozen):
    # Catalog fields (copied from the services table when the catalog loads)
    service_id: str
    name: str
    description: Optional[str] = None
    standard_text: Optional[str] = None
    suggested_fee: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    suggested_monthly_fee: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    fee_type: FeeType = "one_time"

    # Per-proposal state
    is_selected: bool = False
    confidence: int = Field(0, ge=0, le=100)  # advisory only
    custom_text: Optional[str] = None
    custom_fee: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    custom_monthly_fee: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)

    @field_validator("service_id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> str:
        return str(v) if v is not None else v

    @property
    def charges_initial(self) -> bool:
        return self.fee_type in ("one_time", "both")

    @property
    def charges_monthly(self) -> bool:
        return self.fee_type in ("monthly", "both")

    @property
    def effective_fee(self) -> Decimal:
        return to_money(self.custom_fee if self.custom_fee is not None else self.suggested_fee)

    @property
    def effective_monthly_fee(self) -> Decimal:
        if self.custom_monthly_fee is not None:
            return to_money(self.custom_monthly_fee)
        return to_money(self.suggested_monthly_fee)

    @property
    def has_custom_fees(self) -> bool:
        return self.custom_fee is not None or self.custom_monthly_fee is not None

    @property
    def text(self) -> str:
        return self.custom_text or self.standard_text or self.description or ""

    @classmethod
    def from_catalog(cls, row: Dict[str, Any], confidence: int = 0) -> "ServiceSelection":
        """
        Build a selection from a catalog row ({id|service_id, name, fee_type, ...}).
        High-confidence suggestions start selected.
        """
        return cls(
            service_id=row.get("service_id", row.get("id")),
            name=row.get("name") or "",
            description=row.get("description"),
            standard_text=row.get("standard_text"),
            suggested_fee=row.get("suggested_fee"),
            suggested_monthly_fee=row.get("suggested_monthly_fee"),
            fee_type=row.get("fee_type") or "one_time",
            confidence=confidence,
            is_selected=confidence >= AUTO_SELECT_CONFIDENCE,
        )


# ---------- Pricing ----------

class Installment(_Frozen):
    percentage: int = Field(..., ge=0, le=100)
    description: str = ""


class PricingTemplate(_Frozen):
    # Saved fee presets ("Honorarios" catalog). Selecting one forces global mode.
    id: str
    name: str
    initial_payment: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT)
    monthly_retainer: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT)
    retainer_months: int = Field(12, ge=0)
    installments: Tuple[Installment, ...] = ()
    exclusions_text: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> str:
        return str(v) if v is not None else v


class PricingConfig(_Frozen):
    mode: PricingMode = "per_service"
    initial_payment: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT)
    monthly_retainer: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT)
    retainer_months: int = Field(12, ge=0)
    installments: Tuple[Installment, ...] = ()
    initial_payment_description: str = "estudio, análisis y propuesta"
    selected_template_id: Optional[str] = None


class Totals(_Frozen):
    one_time: Decimal = Decimal("0.00")
    monthly: Decimal = Decimal("0.00")


class InstallmentCheck(_Frozen):
    total_percentage: int
    is_valid: bool
    warning: Optional[str] = None


class InstallmentAmount(_Frozen):
    percentage: int
    description: str
    amount: Decimal


# ---------- Overrides ----------

def _aware(ts: datetime) -> datetime:
    # naive timestamps are taken as UTC
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TextOverride(_Frozen):
    section_id: str
    original_text: str
    new_text: str
    is_ai_generated: bool = False
    instruction: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("section_id", mode="before")
    @classmethod
    def _known_section(cls, v: Any) -> str:
        return section_key(v)

    @field_validator("timestamp")
    @classmethod
    def _tz(cls, v: datetime) -> datetime:
        return _aware(v)

    @property
    def provenance(self) -> str:
        return "ai" if self.is_ai_generated else "manual"


class OverrideEvent(_Frozen):
    action: Literal["set", "restore"]
    section_id: str
    is_ai_generated: bool = False
    instruction: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("timestamp")
    @classmethod
    def _tz(cls, v: datetime) -> datetime:
        return _aware(v)


# ---------- AI generated content ----------

class ServiceDescription(_Frozen):
    service_id: str
    expanded_text: str
    objectives: Tuple[str, ...] = ()
    deliverables: Tuple[str, ...] = ()

    @field_validator("service_id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> str:
        return str(v) if v is not None else v


class GeneratedProposalContent(_Frozen):
    service_descriptions: Tuple[ServiceDescription, ...] = ()
    transition_text: str = ""
    closing_text: str = ""
    generated_at: Optional[datetime] = None

    def description_for(self, service_id: str) -> Optional[ServiceDescription]:
        for d in self.service_descriptions:
            if d.service_id == str(service_id):
                return d
        return None


class RewriteContext(BaseModel):
    client_name: str = ""
    industry: Optional[str] = None
    section_type: Optional[str] = None


# ---------- Client / firm ----------

class Entity(_Frozen):
    legal_name: str
    rfc: Optional[str] = None


class PrimaryContact(_Frozen):
    full_name: str
    position: Optional[str] = None
    salutation_prefix: Optional[str] = None  # "Lic.", "C.P.", "Ing." ...


class ClientInfo(_Frozen):
    name: str
    group_alias: Optional[str] = None
    industry: Optional[str] = None
    entity_count: int = Field(1, ge=0)
    employee_count: int = Field(0, ge=0)
    annual_revenue: Optional[Decimal] = Field(None, ge=0)
    entities: Tuple[Entity, ...] = ()
    primary_contact: Optional[PrimaryContact] = None
    objective: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.group_alias or self.name


class FirmSettings(_Frozen):
    # name and city default to FIRM_NAME / FIRM_CITY from the environment
    name: str = Field(default_factory=lambda: get_settings().firm_name)
    logo_url: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    guarantees_text: Optional[str] = None
    disclaimers_text: Optional[str] = None
    closing_text: Optional[str] = None
    city: str = Field(default_factory=lambda: get_settings().firm_city)


# ---------- Generic responses ----------

class SectionOut(BaseModel):
    section_id: str
    kind: str
    display_text: str
    heading: Optional[str] = None
    warning: Optional[str] = None
    provenance: Optional[str] = None
