"""Waitlist bounded context — waiting-list offers and notification dispatch.

Keeps per (business, service) waiting lists, turns freed-up booking slots
into time-boxed exclusive offers for the best-placed waiting customer, and
delivers the resulting notifications over email and SMS exactly once,
honouring consent, suppression and quiet hours.
"""

from protean.domain import Domain

from waitlist.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
waitlist = Domain(name="waitlist")
