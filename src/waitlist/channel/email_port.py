"""Email channel port — abstract interface for email transport."""

from abc import ABC, abstractmethod


class EmailPort(ABC):
    """Abstract interface for email transport adapters."""

    @abstractmethod
    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        """Send an email message.

        Adapters must treat a repeated ``idempotency_key`` as the same send.

        Returns:
            dict with keys: message_id, status ("sent", "soft_fail" or
            "hard_fail"), error (optional)
        """
        ...
