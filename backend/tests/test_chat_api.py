"""
Tests for chat API endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from assistant.orchestration.session import GREETING


WITHDRAWAL_INPUTS = [
    "how much can I withdraw?",
    "continue",
    "continue",
    "continue",
    "type:HARDSHIP",
    "amount:2000",
    "continue",
    "submit",
]


@pytest.fixture
def thread_id(client: TestClient) -> str:
    response = client.post("/chat/session")
    assert response.status_code == 200
    return response.json()["thread_id"]


def send(client: TestClient, thread_id: str, message: str, source: str = "text"):
    return client.post(
        "/chat/message",
        json={"thread_id": thread_id, "message": message, "source": source},
    )


class TestHealth:

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestSessionEndpoints:

    def test_create_session_has_greeting(self, client: TestClient):
        response = client.post("/chat/session")
        assert response.status_code == 200
        data = response.json()
        assert data["thread_id"]
        assert [m["content"] for m in data["messages"]] == [GREETING]

    def test_initial_state(self, client: TestClient, thread_id):
        response = client.get(f"/chat/session/{thread_id}/state")
        assert response.status_code == 200
        data = response.json()
        assert data["active_mode"] == "NONE"
        assert data["flow_state"] is None
        assert data["pending"] is None
        assert data["snapshots"] == {}

    def test_unknown_session(self, client: TestClient):
        assert client.get("/chat/session/nope/messages").status_code == 404
        assert client.get("/chat/session/nope/state").status_code == 404
        assert client.post("/chat/session/nope/reset").status_code == 404


class TestMessageEndpoint:

    def test_direct_loan_request(self, client: TestClient, thread_id):
        response = send(client, thread_id, "I want to apply for a loan")
        assert response.status_code == 200
        data = response.json()
        assert data["thread_id"] == thread_id
        assert data["active_mode"] == "LOAN"
        assert data["flow_state"]["step"] == "RULES"
        assert data["pending"] is False
        assert data["message"]["role"] == "assistant"

    def test_messages_are_logged(self, client: TestClient, thread_id):
        send(client, thread_id, "I want to apply for a loan")
        messages = client.get(f"/chat/session/{thread_id}/messages").json()
        assert [m["role"] for m in messages] == ["assistant", "user", "assistant"]
        assert messages[1]["content"] == "I want to apply for a loan"

    def test_pending_gate_visible_in_state(self, client: TestClient, thread_id):
        data = send(client, thread_id, "borrow from my retirement").json()
        assert data["pending"] is True

        state = client.get(f"/chat/session/{thread_id}/state").json()
        assert state["pending"] == {"kind": "loan"}
        assert state["active_mode"] == "NONE"

    def test_chip_input(self, client: TestClient, thread_id):
        data = send(client, thread_id, "I want to enroll", source="chip").json()
        assert data["active_mode"] == "ENROLLMENT"

    def test_voice_answer_is_spoken(self, client: TestClient, thread_id):
        data = send(client, thread_id, "What is a 401k?", source="voice").json()
        assert data["utterance"] is not None
        assert data["utterance"]["text"] == data["message"]["content"]

    def test_unknown_thread(self, client: TestClient):
        assert send(client, "nope", "hello").status_code == 404

    def test_empty_message_rejected(self, client: TestClient, thread_id):
        assert send(client, thread_id, "").status_code == 422

    def test_blank_message_rejected(self, client: TestClient, thread_id):
        assert send(client, thread_id, "   ").status_code == 422

    def test_invalid_source_rejected(self, client: TestClient, thread_id):
        assert send(client, thread_id, "hello", source="telepathy").status_code == 422


class TestSnapshotsAndReset:

    def test_completed_flow_leaves_snapshot(self, client: TestClient, thread_id):
        for text in WITHDRAWAL_INPUTS:
            data = send(client, thread_id, text).json()
        assert data["active_mode"] == "NONE"

        state = client.get(f"/chat/session/{thread_id}/state").json()
        snapshot = state["snapshots"]["withdrawal"]
        assert snapshot["state"]["step"] == "CONFIRMED"
        assert snapshot["state"]["amount"] == 2000

    def test_dismiss_snapshot(self, client: TestClient, thread_id):
        for text in WITHDRAWAL_INPUTS:
            send(client, thread_id, text)

        response = client.delete(f"/chat/session/{thread_id}/snapshots/withdrawal")
        assert response.status_code == 204
        state = client.get(f"/chat/session/{thread_id}/state").json()
        assert state["snapshots"] == {}

        response = client.delete(f"/chat/session/{thread_id}/snapshots/withdrawal")
        assert response.status_code == 404

    def test_dismiss_unknown_kind(self, client: TestClient, thread_id):
        response = client.delete(f"/chat/session/{thread_id}/snapshots/pension")
        assert response.status_code == 422

    def test_reset(self, client: TestClient, thread_id):
        send(client, thread_id, "I want to apply for a loan")
        response = client.post(f"/chat/session/{thread_id}/reset")
        assert response.status_code == 200
        assert response.json()["active_mode"] == "NONE"

        messages = client.get(f"/chat/session/{thread_id}/messages").json()
        assert [m["content"] for m in messages] == [GREETING]


class TestCapabilityIssues:

    def test_notice_returned_once(self, client: TestClient, thread_id):
        url = f"/chat/session/{thread_id}/capability-issue"
        first = client.post(url, json={"issue": "microphone_denied"})
        second = client.post(url, json={"issue": "microphone_denied"})
        assert first.status_code == 200
        assert first.json()["notice"]
        assert second.json()["notice"] is None

    def test_unknown_issue(self, client: TestClient, thread_id):
        url = f"/chat/session/{thread_id}/capability-issue"
        assert client.post(url, json={"issue": "no_speakers"}).status_code == 422


class TestFlowGraphEndpoint:

    def test_loan_graph(self, client: TestClient):
        response = client.get("/chat/flows/loan/graph")
        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "loan"
        assert data["terminal_step"] == "CONFIRMED"
        assert "RULES" in data["nodes"]
        assert data["mermaid"]

    def test_unknown_flow(self, client: TestClient):
        assert client.get("/chat/flows/mortgage/graph").status_code == 422
