"""SMS channel port — abstract interface for SMS transport."""

from abc import ABC, abstractmethod


class SMSPort(ABC):
    """Abstract interface for SMS transport adapters."""

    @abstractmethod
    def send(self, to: str, body: str, idempotency_key: str | None = None) -> dict:
        """Send an SMS message.

        Returns:
            dict with keys: message_id, status ("sent", "soft_fail" or
            "hard_fail"), error (optional)
        """
        ...
