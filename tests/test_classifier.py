"""Tests for the classification service adapter."""

import asyncio

import pytest

from helpdesk.core import LLMException
from helpdesk.infrastructure.llm import MockLLMClient
from helpdesk.triage.application import ClassifierConfig, TicketClassifier
from helpdesk.triage.domain import ClassificationResult, ClassifierFailure, FailureKind
from tests.fakes import ScriptedLLMClient, classifier_reply, transient_error


def build(*replies, sleep=None, retries=2):
    llm = ScriptedLLMClient(*replies)
    config = ClassifierConfig(transport_retries=retries, backoff_seconds=0.5)
    return TicketClassifier(config, llm_client=llm, sleep=sleep or asyncio.sleep), llm


class TestTicketClassifier:

    @pytest.mark.asyncio
    async def test_well_formed_reply(self, sleep):
        classifier, llm = build(classifier_reply(), sleep=sleep)

        result = await classifier.classify("Printer broken", "Paper jam")

        assert isinstance(result, ClassificationResult)
        assert result.summary == "User cannot print"
        assert result.priority == "high"
        assert result.skills == ["Hardware", "Networking"]
        assert result.model_used == "test-model"
        assert len(llm.calls) == 1
        assert "Title: Printer broken" in llm.calls[0][1]["content"]
        assert "Description: Paper jam" in llm.calls[0][1]["content"]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_fenced_camel_case_reply(self, sleep):
        reply = (
            "```json\n"
            '{"summary": "Wifi drops", "priority": "Medium", '
            '"helpfulNotes": "Reset the AP", "relatedSkills": ["networking"]}\n'
            "```"
        )
        classifier, _ = build(reply, sleep=sleep)

        result = await classifier.classify("Wifi", "Drops every hour")

        assert result.notes == "Reset the AP"
        assert result.skills == ["networking"]
        assert result.priority == "Medium"

    @pytest.mark.asyncio
    async def test_nested_reply_is_unwrapped(self, sleep):
        classifier, _ = build('{"analysis": {"summary": "Nested", "priority": "low"}}', sleep=sleep)

        result = await classifier.classify("t", "d")

        assert result.summary == "Nested"
        assert result.priority == "low"

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried_with_backoff(self, sleep):
        classifier, llm = build(
            transient_error(), asyncio.TimeoutError(), classifier_reply(), sleep=sleep
        )

        result = await classifier.classify("t", "d")

        assert isinstance(result, ClassificationResult)
        assert len(llm.calls) == 3
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_return_transport_failure(self, sleep):
        classifier, llm = build(transient_error("rate limited"), sleep=sleep)

        result = await classifier.classify("t", "d")

        assert isinstance(result, ClassifierFailure)
        assert result.kind == FailureKind.TRANSPORT
        assert result.attempts == 3
        assert "rate limited" in result.reason
        assert len(llm.calls) == 3

    @pytest.mark.asyncio
    async def test_rejected_request_is_not_retried(self, sleep):
        classifier, llm = build(LLMException("invalid api key", transient=False), sleep=sleep)

        result = await classifier.classify("t", "d")

        assert result.kind == FailureKind.AUTH
        assert len(llm.calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_no_retries_configured(self, sleep):
        classifier, llm = build(ConnectionResetError("reset"), sleep=sleep, retries=0)

        result = await classifier.classify("t", "d")

        assert result.kind == FailureKind.TRANSPORT
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        "Sorry, I can't classify this ticket.",
        "",
        '{"answer": 42}',
    ])
    async def test_unusable_reply_is_parse_failure(self, sleep, reply):
        classifier, _ = build(reply, sleep=sleep)

        result = await classifier.classify("t", "d")

        assert isinstance(result, ClassifierFailure)
        assert result.kind == FailureKind.PARSE

    @pytest.mark.asyncio
    async def test_mock_client_from_config(self):
        classifier = TicketClassifier(ClassifierConfig(mock=True))

        result = await classifier.classify("VPN down", "Cannot connect")

        assert isinstance(classifier._llm, MockLLMClient)
        assert result.summary == "Mock: user reports VPN down."
        assert result.skills == ["support"]

    @pytest.mark.asyncio
    async def test_close_closes_client(self):
        classifier, llm = build(classifier_reply())

        await classifier.close()

        assert llm.closed is True
