"""Fake SMS adapter — records sent messages for testing."""

from uuid import uuid4

from waitlist.channel import SENT
from waitlist.channel.scripted import ScriptedOutcomes
from waitlist.channel.sms_port import SMSPort


class FakeSMSAdapter(SMSPort):
    """SMS adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.sent_messages: list[dict] = []
        self.attempts: list[dict] = []
        self.outcomes = ScriptedOutcomes("SMS delivery failed")

    def configure(self, should_succeed: bool = True, failure_reason: str | None = None, hard: bool = False):
        self.outcomes.configure(should_succeed, failure_reason, hard)

    def script(self, *outcomes: str):
        self.outcomes.script(*outcomes)

    def send(self, to: str, body: str, idempotency_key: str | None = None) -> dict:
        self.attempts.append({"to": to, "idempotency_key": idempotency_key})
        outcome = self.outcomes.next_outcome()
        if outcome != SENT:
            return {
                "message_id": None,
                "status": outcome,
                "error": self.outcomes.failure_reason,
            }

        message_id = f"sms-{uuid4().hex[:12]}"
        self.sent_messages.append(
            {
                "message_id": message_id,
                "to": to,
                "body": body,
                "idempotency_key": idempotency_key,
            }
        )
        return {"message_id": message_id, "status": SENT}

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent_messages.clear()
        self.attempts.clear()
        self.outcomes.reset()
