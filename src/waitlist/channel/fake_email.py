"""Fake email adapter — records sent emails for testing."""

from uuid import uuid4

from waitlist.channel import SENT
from waitlist.channel.email_port import EmailPort
from waitlist.channel.scripted import ScriptedOutcomes


class FakeEmailAdapter(EmailPort):
    """Email adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.sent_emails: list[dict] = []
        self.attempts: list[dict] = []
        self.outcomes = ScriptedOutcomes("Email delivery failed")

    def configure(self, should_succeed: bool = True, failure_reason: str | None = None, hard: bool = False):
        self.outcomes.configure(should_succeed, failure_reason, hard)

    def script(self, *outcomes: str):
        self.outcomes.script(*outcomes)

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        self.attempts.append({"to": to, "subject": subject, "idempotency_key": idempotency_key})
        outcome = self.outcomes.next_outcome()
        if outcome != SENT:
            return {
                "message_id": None,
                "status": outcome,
                "error": self.outcomes.failure_reason,
            }

        message_id = f"email-{uuid4().hex[:12]}"
        self.sent_emails.append(
            {
                "message_id": message_id,
                "to": to,
                "subject": subject,
                "body": body,
                "html_body": html_body,
                "idempotency_key": idempotency_key,
            }
        )
        return {"message_id": message_id, "status": SENT}

    def reset(self):
        """Clear sent emails (useful between tests)."""
        self.sent_emails.clear()
        self.attempts.clear()
        self.outcomes.reset()
