"""
Test configuration and fixtures for the retirement assistant backend.
"""

import asyncio
import pytest
from typing import Generator, List
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage

from main import app
from assistant.orchestration.fallback import FallbackAdapter
from assistant.orchestration.orchestrator import DialogueOrchestrator
from assistant.orchestration.participant import ParticipantProfile
from assistant.services.chat import ChatService, get_chat_service
from assistant.services.session_store import InMemorySessionStore


class FakeLLM:
    """Stand-in chat model recording every call."""

    def __init__(self, reply: str = "A 401(k) is an employer-sponsored retirement savings plan."):
        self.reply = reply
        self.calls: List[list] = []

    async def ainvoke(self, messages, config=None):
        self.calls.append(messages)
        return AIMessage(content=self.reply)


class FailingLLM:
    """Chat model whose every call fails like a network error."""

    def __init__(self):
        self.calls = 0

    async def ainvoke(self, messages, config=None):
        self.calls += 1
        raise ConnectionError("model endpoint unreachable")


@pytest.fixture
def participant() -> ParticipantProfile:
    """Demo participant: $80,000 vested, max loan $40,000."""
    return ParticipantProfile(
        vested_balance=80000,
        vested_percent=60,
        current_age=34,
        employment_active=True,
        account_known=True,
        withdrawal_available=12000,
        loan_max_absolute=50000,
        loan_max_pct_of_vested=0.5,
        loan_min_amount=1000,
        loan_term_years_min=1,
        loan_term_years_max=5,
        loan_annual_rate=0.085,
        vesting_schedule_type="graded",
    )


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def failing_llm() -> FailingLLM:
    return FailingLLM()


@pytest.fixture
def orchestrator(fake_llm: FakeLLM, participant: ParticipantProfile) -> DialogueOrchestrator:
    """Fresh orchestrator with a fake fallback model."""
    return DialogueOrchestrator(
        fallback=FallbackAdapter(llm=fake_llm),
        participant=participant,
    )


@pytest.fixture
def chat_service(fake_llm: FakeLLM, participant: ParticipantProfile) -> ChatService:
    return ChatService(
        store=InMemorySessionStore(),
        fallback=FallbackAdapter(llm=fake_llm),
        participant=participant,
    )


@pytest.fixture(scope="function")
def client(chat_service: ChatService) -> Generator[TestClient, None, None]:
    """Create a test client with the chat service override."""
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def say(orchestrator: DialogueOrchestrator):
    """Drive one input event through the orchestrator synchronously."""
    def _say(text: str, source: str = "text"):
        return asyncio.run(orchestrator.submit_input(text, source))
    return _say
