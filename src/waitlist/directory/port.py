"""Directory port — read-only lookups owned by the wider marketplace."""

from abc import ABC, abstractmethod


class DirectoryPort(ABC):
    @abstractmethod
    def customer_history(self, customer_id: str, business_id: str) -> dict:
        """Visit count and total spend of a customer with a business.

        Returns:
            dict with keys: visit_count (int), total_spend (float)
        """
        ...

    @abstractmethod
    def business_name(self, business_id: str) -> str: ...

    @abstractmethod
    def service_name(self, service_id: str) -> str: ...
