# backend/tests/integration/test_api.py
from ledgerbot.config import strings
from ledgerbot.config.settings import settings

API_PREFIX = f"/api/{settings.api_version}"
MESSAGES_URL = f"{API_PREFIX}/webhooks/messages"


def test_root_and_liveness(test_client):
    assert test_client.get("/").json()["status"] == "operational"
    assert test_client.get("/health/live").json() == {"status": "alive"}


def test_health_reports_active_sessions(test_client):
    test_client.post(MESSAGES_URL, json={"user_key": "alice", "text": "add expense"})

    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["active_sessions"] == 1


def test_message_round_trip(test_client, ledger):
    first = test_client.post(MESSAGES_URL, json={"user_key": "alice", "text": "spent $12 at Cafe"})

    assert first.status_code == 200
    assert first.json()["user_key"] == "alice"
    assert strings.SELECT_ACCOUNT_HEADER in first.json()["reply"]

    second = test_client.post(MESSAGES_URL, json={"user_key": "alice", "text": "1"})

    assert "Transaction created" in second.json()["reply"]
    ledger.create_transaction.assert_awaited_once()


def test_attachment_message_is_routed_to_document_processing(test_client, ai):
    ai.extract_transactions.return_value = []

    response = test_client.post(MESSAGES_URL, json={
        "user_key": "alice",
        "text": "march statement",
        "attachment_kind": "PDF",
        "attachment_payload": "statement text",
    })

    assert response.json()["reply"] == strings.DOCUMENT_NO_TRANSACTIONS
    ai.extract_transactions.assert_awaited_once()


def test_invalid_events_are_rejected(test_client):
    assert test_client.post(MESSAGES_URL, json={"text": "hi"}).status_code == 422
    assert test_client.post(MESSAGES_URL, json={"user_key": "", "text": "hi"}).status_code == 422
    response = test_client.post(MESSAGES_URL, json={"user_key": "alice", "attachment_kind": "video"})
    assert response.status_code == 422


def test_api_key_guards_messages_and_metrics(test_client, monkeypatch):
    monkeypatch.setattr(settings, "api_key", "test-key")

    assert test_client.post(MESSAGES_URL, json={"user_key": "alice", "text": "/help"}).status_code == 403
    assert test_client.get("/metrics").status_code == 403

    ok = test_client.post(
        MESSAGES_URL, json={"user_key": "alice", "text": "/help"}, headers={"X-API-KEY": "test-key"}
    )
    assert ok.json()["reply"] == strings.HELP_MESSAGE
    metrics = test_client.get("/metrics", headers={"X-API-KEY": "test-key"})
    assert metrics.status_code == 200
    assert "ledgerbot_messages_total" in metrics.text


def test_admin_sessions_and_queues(test_client, monkeypatch):
    monkeypatch.setattr(settings, "api_key", "test-key")
    headers = {"X-API-KEY": "test-key"}
    test_client.post(MESSAGES_URL, json={"user_key": "alice", "text": "add expense"}, headers=headers)

    assert test_client.get(f"{API_PREFIX}/admin/sessions").status_code == 403

    sessions = test_client.get(f"{API_PREFIX}/admin/sessions", headers=headers).json()
    assert sessions["success"] is True
    session = sessions["data"]["sessions"][0]
    assert session["user_key"] == "alice"
    assert session["root_flow"]["intent"] == "add_expense"

    queues = test_client.get(f"{API_PREFIX}/admin/queues", headers=headers).json()
    assert queues["data"]["total_pending"] == 0
