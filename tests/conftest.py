from datetime import date
from decimal import Decimal

import pytest

from proposal_engine.models.schemas import (
    ClientInfo,
    Entity,
    FirmSettings,
    Installment,
    PricingConfig,
    PricingTemplate,
    PrimaryContact,
    ServiceSelection,
)
from proposal_engine.services.proposal_draft import ProposalDraft

DOC_DATE = date(2026, 10, 18)


@pytest.fixture
def doc_date():
    return DOC_DATE


@pytest.fixture
def services():
    # Scenario A (one-time) + B (one-time and monthly) selected, C not selected.
    return (
        ServiceSelection(
            service_id="a", name="Reestructura corporativa", fee_type="one_time",
            suggested_fee=Decimal("10000"), is_selected=True, confidence=90,
            standard_text="Análisis de la estructura accionaria del grupo.",
        ),
        ServiceSelection(
            service_id="b", name="Cumplimiento fiscal", fee_type="both",
            suggested_fee=Decimal("5000"), suggested_monthly_fee=Decimal("2000"),
            is_selected=True, confidence=75,
        ),
        ServiceSelection(
            service_id="c", name="Litigio mercantil", fee_type="one_time",
            suggested_fee=Decimal("80000"), is_selected=False, confidence=20,
        ),
    )


@pytest.fixture
def client_info():
    return ClientInfo(
        name="Grupo Industrial Norte",
        industry="Manufactura",
        entity_count=3,
        employee_count=250,
        entities=[Entity(legal_name="Industrial Norte, S.A. de C.V.", rfc="INO010101AB1")],
        primary_contact=PrimaryContact(full_name="Juan Pérez García", position="Director General",
                                       salutation_prefix="Lic."),
        objective="la reestructura corporativa del grupo",
    )


@pytest.fixture
def firm():
    return FirmSettings(
        name="Despacho Ejemplo, S.C.",
        address="Av. Paseo de la Reforma 100, Ciudad de México",
        email="contacto@despacho.mx",
        guarantees_text="Si el servicio no cumple con lo pactado, se reembolsará el pago inicial.",
    )


@pytest.fixture
def template():
    return PricingTemplate(
        id="tpl-1",
        name="Reestructura estándar",
        initial_payment=Decimal("300000"),
        monthly_retainer=Decimal("50000"),
        retainer_months=6,
        installments=[Installment(percentage=60, description="a la firma"),
                      Installment(percentage=40, description="a la entrega")],
        exclusions_text="No incluye gastos notariales.",
    )


@pytest.fixture
def draft(client_info, firm, services, template):
    return ProposalDraft(
        client=client_info,
        firm=firm,
        services=services,
        pricing=PricingConfig(mode="per_service", initial_payment=Decimal("15000"),
                              monthly_retainer=Decimal("2000")),
        templates=(template,),
    )
