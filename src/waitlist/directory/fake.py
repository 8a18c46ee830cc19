"""In-memory directory used in development and tests."""

from waitlist.directory.port import DirectoryPort


class FakeDirectory(DirectoryPort):
    def __init__(self):
        self.histories: dict[tuple[str, str], dict] = {}
        self.businesses: dict[str, str] = {}
        self.services: dict[str, str] = {}

    def set_history(self, customer_id: str, business_id: str, visit_count: int = 0, total_spend: float = 0.0):
        self.histories[(customer_id, business_id)] = {
            "visit_count": visit_count,
            "total_spend": total_spend,
        }

    def customer_history(self, customer_id: str, business_id: str) -> dict:
        return self.histories.get((customer_id, business_id), {"visit_count": 0, "total_spend": 0.0})

    def business_name(self, business_id: str) -> str:
        return self.businesses.get(business_id, business_id)

    def service_name(self, service_id: str) -> str:
        return self.services.get(service_id, service_id)

    def reset(self):
        self.histories.clear()
        self.businesses.clear()
        self.services.clear()
