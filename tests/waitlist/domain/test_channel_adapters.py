"""Tests for the fake transport adapters and the statuses they report."""

from waitlist.channel import HARD_FAIL, SENT, SOFT_FAIL
from waitlist.channel.fake_email import FakeEmailAdapter
from waitlist.channel.fake_sms import FakeSMSAdapter


class TestFakeEmail:
    def test_sent(self):
        adapter = FakeEmailAdapter()

        response = adapter.send(to="cust-a@example.com", subject="Hi", body="Hello", idempotency_key="k-1")

        assert response["status"] == SENT
        assert response["message_id"].startswith("email-")
        assert len(adapter.sent_emails) == 1

    def test_scripted_failures(self):
        adapter = FakeEmailAdapter()
        adapter.script(SOFT_FAIL, HARD_FAIL)

        first = adapter.send(to="cust-a@example.com", subject="Hi", body="Hello")
        second = adapter.send(to="cust-a@example.com", subject="Hi", body="Hello")

        assert [first["status"], second["status"]] == [SOFT_FAIL, HARD_FAIL]
        assert first["error"] == "Email delivery failed"
        assert adapter.sent_emails == []
        assert len(adapter.attempts) == 2

    def test_configured_hard_failure(self):
        adapter = FakeEmailAdapter()
        adapter.configure(should_succeed=False, failure_reason="Mailbox unknown", hard=True)

        response = adapter.send(to="cust-a@example.com", subject="Hi", body="Hello")

        assert response == {"message_id": None, "status": HARD_FAIL, "error": "Mailbox unknown"}


class TestFakeSMS:
    def test_sent(self):
        adapter = FakeSMSAdapter()

        assert adapter.send(to="+447700900123", body="Hello")["status"] == SENT
