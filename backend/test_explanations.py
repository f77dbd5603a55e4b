"""Explanation assistant: Groq client retries, prompts, fallback text."""
from datetime import date
from types import SimpleNamespace

import httpx
import pytest
from groq import APITimeoutError, BadRequestError, RateLimitError

from ai import fallback, groq_client, prompts
from ai.groq_client import GroqClient
from app.core.exceptions import UpstreamUnavailable
from app.models.enums import DrugStatus, Role
from app.services import alert_service, custody_service, drug_registry, scan_log_service
from app.services.explanation_service import ExplanationService
from conftest import FakeLLM

REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def _client_with(create, max_retries=1):
    client = GroqClient(api_key="test-key", max_retries=max_retries)
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client


@pytest.fixture
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(groq_client.time, "sleep", sleeps.append)
    return sleeps


@pytest.fixture
def drug(db, users):
    return drug_registry.register_drug(db, "Amoxicillin 500mg", "BATCH-001", date(2026, 12, 31), users["manufacturer"].id)


def test_client_without_key_is_unavailable():
    client = GroqClient(api_key="")
    assert client.is_available() is False
    with pytest.raises(UpstreamUnavailable):
        client.complete([{"role": "user", "content": "hi"}])


def test_completion_text_is_stripped():
    client = _client_with(lambda **kwargs: _completion("  Looks genuine.  "))
    assert client.complete([{"role": "user", "content": "hi"}]) == "Looks genuine."


def test_timeout_is_retried(no_sleep):
    attempts = []

    def create(**kwargs):
        attempts.append(kwargs)
        if len(attempts) == 1:
            raise APITimeoutError(request=REQUEST)
        return _completion("Recovered.")

    assert _client_with(create).complete([{"role": "user", "content": "hi"}]) == "Recovered."
    assert len(attempts) == 2
    assert no_sleep == [0.25]


def test_rate_limit_exhausts_retries(no_sleep):
    def create(**kwargs):
        raise RateLimitError("slow down", response=httpx.Response(429, request=REQUEST), body=None)

    with pytest.raises(UpstreamUnavailable):
        _client_with(create, max_retries=2).complete([{"role": "user", "content": "hi"}])
    assert no_sleep == [0.5, 1.0]


def test_permanent_error_is_not_retried(no_sleep):
    attempts = []

    def create(**kwargs):
        attempts.append(kwargs)
        raise BadRequestError("bad", response=httpx.Response(400, request=REQUEST), body=None)

    with pytest.raises(UpstreamUnavailable):
        _client_with(create).complete([{"role": "user", "content": "hi"}])
    assert len(attempts) == 1
    assert no_sleep == []


def test_unexpected_client_error_is_unavailable(no_sleep):
    def create(**kwargs):
        raise RuntimeError("malformed SDK response")

    with pytest.raises(UpstreamUnavailable):
        _client_with(create).complete([{"role": "user", "content": "hi"}])
    assert no_sleep == []


def test_transition_survives_unexpected_client_error(db, drug):
    def create(**kwargs):
        raise RuntimeError("malformed SDK response")

    moved = custody_service.advance_status(db, drug.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR,
                                           explainer=ExplanationService(client=_client_with(create)))

    assert moved.status == "distributed"
    event = scan_log_service.list_events(db, drug.id)[-1]
    assert event.explanation == "Drug status updated to distributed by distributor."


def test_transition_explanation_is_not_retried(db, drug, no_sleep):
    attempts = []

    def create(**kwargs):
        attempts.append(kwargs)
        raise APITimeoutError(request=REQUEST)

    client = _client_with(create, max_retries=3)
    custody_service.advance_status(db, drug.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR,
                                   explainer=ExplanationService(client=client))

    assert len(attempts) == 1
    assert no_sleep == []
    assert scan_log_service.list_events(db, drug.id)[-1].explanation == (
        "Drug status updated to distributed by distributor."
    )


def test_empty_completion_is_unavailable():
    with pytest.raises(UpstreamUnavailable):
        _client_with(lambda **kwargs: _completion("")).complete([{"role": "user", "content": "hi"}])


def test_explain_prompt_carries_drug_data(db, drug):
    events = scan_log_service.list_events(db, drug.id)
    messages = prompts.build_explain_messages(drug, "Status updated to distributed", "distributor", events, [])

    body = messages[-1]["content"]
    assert "Amoxicillin 500mg" in body
    assert "BATCH-001" in body
    assert "Performed by: distributor" in body
    assert "manufacturer at Manufacturing Facility - created" in body


def test_verify_prompt_lists_alerts(db, drug):
    alert = alert_service.create_alert(db, drug.id, "duplicate_scan", "Seen in two cities")
    body = prompts.build_verify_messages(drug, [], [alert])[-1]["content"]
    assert "duplicate_scan: Seen in two cities" in body


def test_unknown_drug_explanation():
    service = ExplanationService(client=FakeLLM(reply="unused"))
    assert service.explain(None, [], []) == fallback.UNKNOWN_DRUG_EXPLANATION
    assert service.client.calls == []


def test_verify_fallback_for_flagged_drug(db, drug):
    drug.status = "flagged"
    text = ExplanationService(client=FakeLLM()).explain(drug, [], [], kind="verify")
    assert "has been flagged as suspicious" in text


def test_explain_fallback_mentions_status(db, drug):
    text = ExplanationService(client=FakeLLM()).explain(drug, [], [])
    assert text == (
        "Drug Amoxicillin 500mg (Batch: BATCH-001) status updated to created. "
        "The supply chain record has been updated accordingly."
    )


def test_explain_uses_llm_text_when_available(db, drug):
    service = ExplanationService(client=FakeLLM(reply="Registered and awaiting shipment."))
    assert service.explain(drug, [], [], kind="verify") == "Registered and awaiting shipment."


def test_chat_history_is_truncated():
    llm = FakeLLM(reply="ok")
    history = [
        {"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"}
        for i in range(14)
    ]

    assert ExplanationService(client=llm).chat("latest?", history) == "ok"

    messages = llm.calls[0]
    assert len(messages) == 12
    assert messages[0]["role"] == "system"
    assert messages[1]["content"] == "turn 4"
    assert messages[-1] == {"role": "user", "content": "latest?"}


def test_chat_includes_drug_context(db, drug):
    llm = FakeLLM(reply="ok")
    ExplanationService(client=llm).chat("Is this genuine?", [], drug=drug,
                                        events=scan_log_service.list_events(db, drug.id), alerts=[])
    assert "Batch: BATCH-001" in llm.calls[0][0]["content"]


def test_chat_fallback():
    assert ExplanationService(client=FakeLLM()).chat("hello", []) == fallback.CHAT_FALLBACK
