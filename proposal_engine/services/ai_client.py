# proposal_engine/services/ai_client.py
from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, List, Literal, Optional, Sequence

import httpx
from pydantic import BaseModel, Field, ValidationError

from proposal_engine.config import get_settings
from proposal_engine.models.schemas import (
    ClientInfo,
    GeneratedProposalContent,
    RewriteContext,
    ServiceSelection,
    utcnow,
)

log = logging.getLogger("ai_client")

# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------
REWRITE_SYSTEM = (
    "Eres un abogado senior especializado en la redacción de propuestas legales corporativas en México. "
    "Tu tarea es reescribir textos de propuestas siguiendo las instrucciones del usuario.\n"
    "{section}\n{client}\n"
    "REGLAS IMPORTANTES:\n"
    "1. Mantén un tono profesional y formal apropiado para documentos legales\n"
    "2. Preserva la información técnica y legal importante\n"
    "3. No inventes datos específicos (nombres, fechas, montos) que no estén en el original\n"
    "4. Responde ÚNICAMENTE con el texto reescrito, sin explicaciones adicionales\n"
    "5. El texto debe estar en español formal mexicano\n"
    "6. Mantén la longitud similar al original a menos que la instrucción indique lo contrario"
)

CONTENT_SYSTEM = (
    "Eres un abogado senior de un prestigioso despacho legal mexicano. Tu especialidad es redactar "
    "propuestas de servicios legales profesionales, claras y personalizadas para cada cliente. "
    "Usa lenguaje formal en tercera persona y evita frases genéricas."
)

BLOCK_SYSTEM = (
    "Eres un redactor legal profesional para un despacho de abogados en México. Genera SOLO el contenido "
    "solicitado, en español formal, sin placeholders ni explicaciones adicionales."
)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."
CREDITS_MESSAGE = "AI credits exhausted. Please add credits to continue."


class AIServiceError(Exception):
    """Failure of the AI gateway. status_code is what the HTTP layer should answer with."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TemplateBlock(BaseModel):
    block_id: str
    instructions: str
    placeholder_content: Optional[str] = None


class TemplateContent(BaseModel):
    contents: Dict[str, str] = Field(default_factory=dict)
    errors: Dict[str, str] = Field(default_factory=dict)


def strip_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper the model sometimes adds around JSON."""
    t = (text or "").strip()
    if t.startswith("```json"):
        t = t[7:]
    elif t.startswith("```"):
        t = t[3:]
    if t.endswith("```"):
        t = t[:-3]
    return t.strip()


def parse_generated_content(raw: str) -> GeneratedProposalContent:
    try:
        data = json.loads(strip_fences(raw))
    except json.JSONDecodeError as e:
        raise AIServiceError(f"Failed to parse AI response as JSON: {e}") from e
    if not isinstance(data, dict):
        raise AIServiceError("AI response is not a JSON object")

    transition = data.get("transitionText") or data.get("transition_text")
    closing = data.get("closingText") or data.get("closing_text")
    descriptions = data.get("serviceDescriptions") or data.get("service_descriptions")
    if not transition or not closing or descriptions is None:
        raise AIServiceError("AI response missing required fields")

    try:
        return GeneratedProposalContent(
            transition_text=transition,
            closing_text=closing,
            service_descriptions=[
                {
                    "service_id": d.get("serviceId", d.get("service_id")),
                    "expanded_text": d.get("expandedText") or d.get("expanded_text") or "",
                    "objectives": d.get("objectives") or [],
                    "deliverables": d.get("deliverables") or [],
                }
                for d in descriptions
            ],
            generated_at=utcnow(),
        )
    except (ValidationError, AttributeError, TypeError) as e:
        raise AIServiceError(f"AI response has an invalid structure: {e}") from e


class AIClient:
    """
    Thin async client for an OpenAI-compatible chat completions gateway.
    No retries and no timeout of its own: callers pass timeout= when they want one.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        s = get_settings()
        self.base_url = (base_url or s.ai_gateway_url or "").rstrip("/")
        self.api_key = api_key or s.ai_api_key or ""
        self.model = model or s.ai_model
        self.temperature = s.ai_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or s.ai_max_tokens
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def _chat(self, system: str, user: str, timeout: Optional[float] = None,
                    max_tokens: Optional[int] = None) -> str:
        if not self.configured:
            raise AIServiceError("AI gateway is not configured", status_code=503)
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system}, {"role": "user", "content": user}],
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as cx:
                r = await cx.post(f"{self.base_url}/chat/completions", headers=headers, json=payload,
                                  timeout=httpx.Timeout(timeout) if timeout else None)
        except httpx.TimeoutException as e:
            raise AIServiceError(f"AI gateway timed out: {e}", status_code=504) from e
        except httpx.HTTPError as e:
            raise AIServiceError(f"AI gateway unreachable: {e}") from e

        if r.status_code == 429:
            raise AIServiceError(RATE_LIMIT_MESSAGE, status_code=429)
        if r.status_code == 402:
            raise AIServiceError(CREDITS_MESSAGE, status_code=402)
        if r.status_code >= 400:
            log.error("AI gateway error %s: %s", r.status_code, r.text[:300])
            raise AIServiceError(f"AI gateway error: {r.status_code}")

        try:
            data = r.json()
            content = (data.get("choices") or [{}])[0].get("message", {}).get("content") or ""
        except (ValueError, AttributeError, IndexError) as e:
            raise AIServiceError(f"Malformed AI gateway response: {e}") from e
        content = content.strip()
        if not content:
            raise AIServiceError("No content returned from AI")
        return content

    # -------------------------------------------------------------------------
    # Rewrite
    # -------------------------------------------------------------------------
    async def rewrite(self, original_text: str, instruction: str,
                      context: Optional[RewriteContext] = None, timeout: Optional[float] = None) -> str:
        if not (original_text or "").strip() or not (instruction or "").strip():
            raise AIServiceError("original_text and instruction are required", status_code=400)
        ctx = context or RewriteContext()
        section = f'Esta es una sección de tipo "{ctx.section_type}" de la propuesta.' if ctx.section_type else ""
        client = ""
        if ctx.client_name:
            sector = f", del sector {ctx.industry}" if ctx.industry else ""
            client = f"El cliente es {ctx.client_name}{sector}."
        system = REWRITE_SYSTEM.format(section=section, client=client)
        user = (
            f'Texto original:\n"""\n{original_text}\n"""\n\n'
            f"Instrucción del usuario: {instruction}\n\n"
            "Reescribe el texto siguiendo la instrucción. Responde SOLO con el texto reescrito:"
        )
        text = await self._chat(system, user, timeout=timeout)
        log.info("rewrite done (%d -> %d chars)", len(original_text), len(text))
        return text

    # -------------------------------------------------------------------------
    # Content generation
    # -------------------------------------------------------------------------
    async def generate_content(
        self,
        case_id: str,
        mode: Literal["template", "freeform"],
        client: Optional[ClientInfo] = None,
        services: Sequence[ServiceSelection] = (),
        background: Optional[str] = None,
        blocks: Sequence[TemplateBlock] = (),
        timeout: Optional[float] = None,
    ):
        """
        template: TemplateContent with one text per block (blocks run concurrently,
                  a failed block lands in .errors instead of failing the call)
        freeform: GeneratedProposalContent parsed from the model's JSON answer
        """
        context = _case_context(case_id, client, services, background)
        if mode == "template":
            return await self._generate_blocks(context, blocks, timeout)
        if mode == "freeform":
            raw = await self._chat(CONTENT_SYSTEM, _freeform_prompt(context, services), timeout=timeout,
                                   max_tokens=max(self.max_tokens, 4000))
            return parse_generated_content(raw)
        raise ValueError(f"unknown generation mode: {mode!r}")

    async def _generate_blocks(self, context: str, blocks: Sequence[TemplateBlock],
                               timeout: Optional[float]) -> TemplateContent:
        if not blocks:
            raise AIServiceError("No blocks provided", status_code=400)

        async def one(block: TemplateBlock) -> str:
            prompt = f"{context}\n\n---\n\nINSTRUCCIONES PARA GENERAR:\n{block.instructions}"
            if block.placeholder_content:
                prompt += f"\n\nCONTENIDO DE REFERENCIA (reemplazar):\n{block.placeholder_content}"
            return await self._chat(BLOCK_SYSTEM, prompt + "\n\nGenera el contenido ahora:", timeout=timeout)

        results = await asyncio.gather(*(one(b) for b in blocks), return_exceptions=True)
        out = TemplateContent()
        for block, res in zip(blocks, results):
            if isinstance(res, AIServiceError):
                log.warning("block %s failed: %s", block.block_id, res.message)
                out.errors[block.block_id] = res.message
            elif isinstance(res, BaseException):
                raise res
            else:
                out.contents[block.block_id] = res
        return out


def _case_context(case_id: str, client: Optional[ClientInfo], services: Sequence[ServiceSelection],
                  background: Optional[str]) -> str:
    lines = [f"CONTEXTO DEL CASO ({case_id}):"]
    if client:
        industry = f" ({client.industry})" if client.industry else ""
        lines.append(f"- Cliente: {client.display_name}{industry}")
        lines.append(f"- Número de entidades: {client.entity_count}")
        if client.employee_count:
            lines.append(f"- Empleados aproximados: {client.employee_count}")
        for e in client.entities:
            rfc = f" (RFC: {e.rfc})" if e.rfc else ""
            lines.append(f"- Entidad: {e.legal_name}{rfc}")
        if client.objective:
            lines.append(f"- Objetivo: {client.objective}")
    if background:
        lines.append(f"- Antecedentes: {background}")
    chosen = [s for s in services if s.is_selected]
    if chosen:
        lines.append("\nSERVICIOS A PRESTAR:")
        for i, s in enumerate(chosen, 1):
            desc = f": {s.description}" if s.description else ""
            lines.append(f"{i}. {s.name}{desc}")
    return "\n".join(lines)


def _freeform_prompt(context: str, services: Sequence[ServiceSelection]) -> str:
    ids: List[str] = [f'- {s.name}: "{s.service_id}"' for s in services if s.is_selected]
    return (
        f"{context}\n\n"
        "Genera el contenido narrativo de la propuesta en formato JSON con las llaves:\n"
        "1. transitionText: un párrafo (2-4 oraciones) que conecte la situación del cliente con los servicios.\n"
        "2. serviceDescriptions: un arreglo con un elemento por servicio con serviceId, expandedText "
        "(3-5 oraciones), objectives (2-4 objetivos) y deliverables.\n"
        "3. closingText: un párrafo de cierre (2-3 oraciones).\n\n"
        "Responde ÚNICAMENTE con el JSON válido, sin texto adicional ni markdown.\n\n"
        "Los IDs de los servicios son:\n" + "\n".join(ids)
    )
