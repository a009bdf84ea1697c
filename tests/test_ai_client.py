import asyncio
import json

import httpx
import pytest

from proposal_engine.models.schemas import RewriteContext
from proposal_engine.services.ai_client import (
    CREDITS_MESSAGE,
    RATE_LIMIT_MESSAGE,
    AIClient,
    AIServiceError,
    TemplateBlock,
    parse_generated_content,
)

GATEWAY = "https://gateway.test/v1"


def _reply(content, status=200):
    return httpx.Response(status, json={"choices": [{"message": {"content": content}}]})


def _client(handler):
    return AIClient(base_url=GATEWAY, api_key="secret", model="test-model", temperature=0.2,
                    max_tokens=500, transport=httpx.MockTransport(handler))


def _run(coro):
    return asyncio.run(coro)


def test_rewrite_success_sends_chat_payload():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return _reply("  Texto pulido.  ")

    ctx = RewriteContext(client_name="ACME", industry="Energía", section_type="background")
    text = _run(_client(handler).rewrite("Texto original.", "más formal", ctx))
    assert text == "Texto pulido."
    assert seen["url"] == f"{GATEWAY}/chat/completions"
    assert seen["auth"] == "Bearer secret"
    body = seen["body"]
    assert body["model"] == "test-model"
    assert body["temperature"] == 0.2
    assert body["max_tokens"] == 500
    system, user = body["messages"]
    assert system["role"] == "system"
    assert "ACME, del sector Energía" in system["content"]
    assert '"background"' in system["content"]
    assert "Texto original." in user["content"]
    assert "más formal" in user["content"]


@pytest.mark.parametrize("status, expected_status, message", [
    (429, 429, RATE_LIMIT_MESSAGE),
    (402, 402, CREDITS_MESSAGE),
    (500, 502, "AI gateway error: 500"),
    (401, 502, "AI gateway error: 401"),
])
def test_gateway_errors(status, expected_status, message):
    client = _client(lambda request: httpx.Response(status, text="nope"))
    with pytest.raises(AIServiceError) as exc:
        _run(client.rewrite("Texto.", "x"))
    assert exc.value.status_code == expected_status
    assert exc.value.message == message


def test_empty_content_is_an_error():
    with pytest.raises(AIServiceError) as exc:
        _run(_client(lambda request: _reply("   ")).rewrite("Texto.", "x"))
    assert exc.value.status_code == 502


def test_missing_input_is_rejected_without_a_call():
    calls = []
    client = _client(lambda request: calls.append(request) or _reply("x"))
    with pytest.raises(AIServiceError) as exc:
        _run(client.rewrite("   ", "x"))
    assert exc.value.status_code == 400
    assert calls == []


def test_unconfigured_gateway():
    client = _client(lambda request: _reply("x"))
    client.base_url = ""
    with pytest.raises(AIServiceError) as exc:
        _run(client.rewrite("Texto.", "x"))
    assert exc.value.status_code == 503


def test_timeout_maps_to_504():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(AIServiceError) as exc:
        _run(_client(handler).rewrite("Texto.", "x", timeout=1))
    assert exc.value.status_code == 504


def test_connection_error_maps_to_502():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(AIServiceError) as exc:
        _run(_client(handler).rewrite("Texto.", "x"))
    assert exc.value.status_code == 502


FREEFORM = {
    "transitionText": "Por lo anterior, proponemos lo siguiente.",
    "serviceDescriptions": [
        {"serviceId": "a", "expandedText": "Revisión de la estructura.", "objectives": ["Orden"],
         "deliverables": ["Dictamen"]},
    ],
    "closingText": "Quedamos a sus órdenes.",
}


def test_freeform_generation_parses_fenced_json(client_info, services):
    raw = "```json\n" + json.dumps(FREEFORM, ensure_ascii=False) + "\n```"
    content = _run(_client(lambda request: _reply(raw)).generate_content(
        "case-1", "freeform", client=client_info, services=services))
    assert content.transition_text == FREEFORM["transitionText"]
    assert content.closing_text == "Quedamos a sus órdenes."
    desc = content.description_for("a")
    assert desc.expanded_text == "Revisión de la estructura."
    assert desc.objectives == ("Orden",)
    assert content.generated_at is not None


def test_freeform_missing_fields():
    with pytest.raises(AIServiceError) as exc:
        parse_generated_content(json.dumps({"transitionText": "x"}))
    assert "missing required fields" in exc.value.message
    with pytest.raises(AIServiceError):
        parse_generated_content("no es json")
    assert parse_generated_content(json.dumps({
        "transition_text": "t", "closing_text": "c", "service_descriptions": [],
    })).service_descriptions == ()


def test_template_blocks_partial_failure(client_info, services):
    def handler(request):
        prompt = json.loads(request.content)["messages"][1]["content"]
        if "FALLA" in prompt:
            return httpx.Response(429)
        return _reply("Contenido del bloque.")

    blocks = [
        TemplateBlock(block_id="intro", instructions="Redacta la introducción"),
        TemplateBlock(block_id="roto", instructions="FALLA"),
    ]
    result = _run(_client(handler).generate_content("case-1", "template", client=client_info,
                                                   services=services, blocks=blocks))
    assert result.contents == {"intro": "Contenido del bloque."}
    assert result.errors == {"roto": RATE_LIMIT_MESSAGE}


def test_template_mode_needs_blocks():
    with pytest.raises(AIServiceError) as exc:
        _run(_client(lambda request: _reply("x")).generate_content("case-1", "template"))
    assert exc.value.status_code == 400
