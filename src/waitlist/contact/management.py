"""Contact management commands + handlers — details, consent, quiet hours."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from waitlist.contact.contact import CustomerContact
from waitlist.domain import waitlist


@waitlist.command(part_of="CustomerContact")
class RegisterContact:
    """Create or update a customer's contact details."""

    customer_id: Identifier(required=True)
    email: String(max_length=254)
    phone: String(max_length=32)
    email_consent: Boolean()
    sms_consent: Boolean()
    timezone: String(max_length=64)


@waitlist.command(part_of="CustomerContact")
class UpdateConsent:
    customer_id: Identifier(required=True)
    channel: String(required=True, max_length=10)
    granted: Boolean(required=True)


@waitlist.command(part_of="CustomerContact")
class SetContactQuietHours:
    customer_id: Identifier(required=True)
    start: String(required=True, max_length=5)
    end: String(required=True, max_length=5)


@waitlist.command(part_of="CustomerContact")
class ClearContactQuietHours:
    customer_id: Identifier(required=True)


@waitlist.command_handler(part_of=CustomerContact)
class ContactManagementHandler:
    @handle(RegisterContact)
    def register_contact(self, command: RegisterContact):
        repo = current_domain.repository_for(CustomerContact)
        try:
            contact = repo.get(command.customer_id)
        except ObjectNotFoundError:
            contact = CustomerContact.register(
                customer_id=command.customer_id,
                email=command.email,
                phone=command.phone,
                email_consent=True if command.email_consent is None else command.email_consent,
                sms_consent=bool(command.sms_consent),
                timezone=command.timezone,
            )
        else:
            if command.email is not None or command.phone is not None or command.timezone is not None:
                contact.update_details(email=command.email, phone=command.phone, timezone=command.timezone)
            if command.email_consent is not None and command.email_consent != contact.email_consent:
                contact.set_consent("email", command.email_consent)
            if command.sms_consent is not None and command.sms_consent != contact.sms_consent:
                contact.set_consent("sms", command.sms_consent)
        repo.add(contact)
        return str(contact.customer_id)

    @handle(UpdateConsent)
    def update_consent(self, command: UpdateConsent):
        repo = current_domain.repository_for(CustomerContact)
        contact = repo.get(command.customer_id)
        contact.set_consent(command.channel, command.granted)
        repo.add(contact)

    @handle(SetContactQuietHours)
    def set_quiet_hours(self, command: SetContactQuietHours):
        repo = current_domain.repository_for(CustomerContact)
        contact = repo.get(command.customer_id)
        contact.set_quiet_hours(command.start, command.end)
        repo.add(contact)

    @handle(ClearContactQuietHours)
    def clear_quiet_hours(self, command: ClearContactQuietHours):
        repo = current_domain.repository_for(CustomerContact)
        contact = repo.get(command.customer_id)
        contact.clear_quiet_hours()
        repo.add(contact)
