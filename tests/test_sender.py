"""Tests for the email sender."""

from __future__ import annotations

from email import message_from_string, policy
from typing import Any

import pytest

from mimegate import EmailSender, MailEnvironment
from mimegate.exceptions import MailSendError, MailTransportError, MailValidationError
from mimegate.mime import MimeMessage
from mimegate.models import Contact, EmailRequest, MailboxRole, NormalizedContact
from mimegate.transport import MailTransport, OutboundMessage


def _request(**overrides: Any) -> EmailRequest:
    fields: dict[str, Any] = {"from_": "a@x.com", "to": "b@x.com", "subject": "Hi", "text": "hello"}
    fields.update(overrides)
    return EmailRequest(**fields)


class TestConvertContact:
    """Tests for single contact normalization."""

    def test_string_address(self) -> None:
        """A bare address yields addr only."""
        contact = EmailSender.convert_contact("a@b.com")
        assert contact == NormalizedContact(addr="a@b.com")
        assert contact is not None
        assert contact.name is None
        assert contact.role is None

    def test_structured_contact(self) -> None:
        """A structured contact keeps its display name."""
        contact = EmailSender.convert_contact(Contact(address="a@b.com", name="A"))
        assert contact == NormalizedContact(addr="a@b.com", name="A")

    def test_none(self) -> None:
        """Absent contact converts to None."""
        assert EmailSender.convert_contact(None) is None

    def test_mapping_contact(self) -> None:
        """A decoded ``{"address", "name"}`` object is accepted."""
        contact = EmailSender.convert_contact({"address": "a@b.com", "name": "A"})
        assert contact == NormalizedContact(addr="a@b.com", name="A")

    def test_mapping_without_address(self) -> None:
        """A mapping with no address is rejected."""
        with pytest.raises(MailValidationError, match="Contact.address"):
            EmailSender.convert_contact({"name": "A"})


class TestConvertContacts:
    """Tests for contact list normalization."""

    def test_single_contact_with_role(self) -> None:
        """A single contact is wrapped in a one-element list."""
        contacts = EmailSender.convert_contacts("c@x.com", MailboxRole.CC)
        assert len(contacts) == 1
        assert contacts[0].role is MailboxRole.CC
        assert contacts[0].role == "Cc"

    def test_none_yields_empty_list(self) -> None:
        """Absent input yields an empty list."""
        assert EmailSender.convert_contacts(None) == []

    def test_empty_list_yields_empty_list(self) -> None:
        """Empty input yields an empty list."""
        assert EmailSender.convert_contacts([], MailboxRole.TO) == []

    def test_role_applied_to_every_contact(self) -> None:
        """Every converted contact carries the role."""
        contacts = EmailSender.convert_contacts(
            ["one@x.com", Contact("two@x.com", "Two")],
            MailboxRole.BCC,
        )
        assert [c.addr for c in contacts] == ["one@x.com", "two@x.com"]
        assert [c.name for c in contacts] == [None, "Two"]
        assert all(c.role is MailboxRole.BCC for c in contacts)

    def test_without_role(self) -> None:
        """No role leaves contacts untagged."""
        contacts = EmailSender.convert_contacts(Contact("a@x.com"))
        assert contacts[0].role is None

    def test_single_mapping_wrapped(self) -> None:
        """A single mapping is one contact, not a sequence of its keys."""
        contacts = EmailSender.convert_contacts({"address": "c@x.com", "name": "C"}, MailboxRole.CC)
        assert contacts == [NormalizedContact(addr="c@x.com", name="C", role=MailboxRole.CC)]

    def test_list_of_mappings(self) -> None:
        """Mappings inside a list are converted one by one."""
        contacts = EmailSender.convert_contacts([{"address": "one@x.com"}, {"address": "two@x.com", "name": "Two"}])
        assert [(c.addr, c.name) for c in contacts] == [("one@x.com", None), ("two@x.com", "Two")]

    def test_empty_addresses_dropped(self) -> None:
        """Empty address strings never become contacts."""
        contacts = EmailSender.convert_contacts(["", "b@x.com", ""], MailboxRole.TO)
        assert [c.addr for c in contacts] == ["b@x.com"]


class TestCompose:
    """Tests for request validation and message composition."""

    def test_missing_request(self) -> None:
        """None is rejected."""
        with pytest.raises(MailValidationError, match="Email is null"):
            EmailSender.compose(None)

    @pytest.mark.parametrize("sender", [None, ""])
    def test_missing_sender(self, sender: str | None) -> None:
        """Missing or empty sender is rejected."""
        with pytest.raises(MailValidationError, match="Email.from"):
            EmailSender.compose(_request(from_=sender))

    @pytest.mark.parametrize("to", [None, "", [], [""], ["", ""]])
    def test_missing_recipients(self, to: Any) -> None:
        """Missing or empty recipients are rejected."""
        with pytest.raises(MailValidationError, match="Email.to"):
            EmailSender.compose(_request(to=to))

    @pytest.mark.parametrize("subject", [None, ""])
    def test_missing_subject(self, subject: str | None) -> None:
        """Missing or empty subject is rejected."""
        with pytest.raises(MailValidationError, match="Email.subject"):
            EmailSender.compose(_request(subject=subject))

    def test_text_only(self) -> None:
        """Text-only request has a single plain part."""
        msg = EmailSender.compose(_request())
        assert msg.parts == [("text/plain", "hello")]

    def test_html_only(self) -> None:
        """HTML-only request has a single HTML part."""
        msg = EmailSender.compose(_request(text=None, html="<p>hello</p>"))
        assert msg.parts == [("text/html", "<p>hello</p>")]

    def test_text_and_html_plain_first(self) -> None:
        """Both bodies are kept, plain text first."""
        msg = EmailSender.compose(_request(html="<p>hello</p>"))
        assert [ctype for ctype, _ in msg.parts] == ["text/plain", "text/html"]

        rendered = msg.to_email_message()
        assert rendered.get_content_type() == "multipart/alternative"
        subtypes = [part.get_content_type() for part in rendered.iter_parts()]
        assert subtypes == ["text/plain", "text/html"]

    def test_structured_sender(self) -> None:
        """A structured sender keeps its display name."""
        msg = EmailSender.compose(_request(from_=Contact("a@x.com", "Alice")))
        assert msg.sender == NormalizedContact(addr="a@x.com", name="Alice")
        assert msg.sender is not None
        assert msg.sender.role is None

    def test_cc_and_bcc_collected(self) -> None:
        """Cc and Bcc recipients follow the To recipients."""
        msg = EmailSender.compose(
            _request(to=["b@x.com", "c@x.com"], cc=Contact("d@x.com", "D"), bcc=["e@x.com"]),
        )
        assert [(c.addr, c.role) for c in msg.recipients] == [
            ("b@x.com", MailboxRole.TO),
            ("c@x.com", MailboxRole.TO),
            ("d@x.com", MailboxRole.CC),
            ("e@x.com", MailboxRole.BCC),
        ]

    def test_mapping_cc_rendered_as_contact(self) -> None:
        """A mapping cc renders as a display name and address."""
        msg = EmailSender.compose(_request(cc={"address": "c@x.com", "name": "C"}))
        raw = msg.as_raw()

        parsed = message_from_string(raw, policy=policy.default)
        assert parsed["Cc"] == "C <c@x.com>"
        assert "address, name" not in raw

    def test_returns_unserialized_message(self) -> None:
        """Compose returns the builder."""
        msg = EmailSender.compose(_request())
        assert isinstance(msg, MimeMessage)
        assert msg.subject == "Hi"


class TestSend:
    """Tests for the full send path."""

    @pytest.mark.asyncio
    async def test_simple_request(self, simple_request: EmailRequest, recording_transport: Any) -> None:
        """The transport receives the envelope and a raw message with the body."""
        await EmailSender.send(simple_request, MailEnvironment(recording_transport))

        assert len(recording_transport.sent) == 1
        outbound: OutboundMessage = recording_transport.sent[0]
        assert outbound.from_address == "a@x.com"
        assert outbound.to_addresses == "b@x.com"
        assert "hello" in outbound.raw

        parsed = message_from_string(outbound.raw, policy=policy.default)
        assert parsed["From"] == "a@x.com"
        assert parsed["To"] == "b@x.com"
        assert parsed["Subject"] == "Hi"
        assert parsed.get_content_type() == "text/plain"

    @pytest.mark.asyncio
    async def test_structured_sender_envelope(self, recording_transport: Any) -> None:
        """The envelope sender is the structured contact's address."""
        request = _request(from_=Contact("a@x.com", "Alice"))
        await EmailSender.send(request, MailEnvironment(recording_transport))

        outbound = recording_transport.sent[0]
        assert outbound.from_address == "a@x.com"
        assert "Alice <a@x.com>" in outbound.raw

    @pytest.mark.asyncio
    async def test_mapping_sender_envelope(self, recording_transport: Any) -> None:
        """A mapping sender yields its address as the envelope sender."""
        request = _request(from_={"address": "a@x.com", "name": "Alice"})
        await EmailSender.send(request, MailEnvironment(recording_transport))

        outbound = recording_transport.sent[0]
        assert outbound.from_address == "a@x.com"
        assert "Alice <a@x.com>" in outbound.raw

    @pytest.mark.asyncio
    async def test_envelope_recipients_taken_verbatim(self, recording_transport: Any) -> None:
        """The envelope keeps the caller's ``to`` value unchanged."""
        to = ["b@x.com", "c@x.com"]
        await EmailSender.send(_request(to=to, bcc="hidden@x.com"), MailEnvironment(recording_transport))

        outbound = recording_transport.sent[0]
        assert outbound.to_addresses is to
        assert "hidden@x.com" not in outbound.raw

    @pytest.mark.parametrize(
        "overrides",
        [{"from_": None}, {"to": None}, {"subject": None}, {"to": []}, {"to": [""]}],
    )
    @pytest.mark.asyncio
    async def test_validation_error_skips_transport(self, overrides: dict[str, Any], recording_transport: Any) -> None:
        """Invalid requests never reach the transport."""
        with pytest.raises(MailValidationError):
            await EmailSender.send(_request(**overrides), MailEnvironment(recording_transport))
        assert recording_transport.sent == []

    @pytest.mark.asyncio
    async def test_missing_body_skips_transport(self, recording_transport: Any) -> None:
        """A request with no body cannot be serialized."""
        with pytest.raises(MailValidationError, match="No content"):
            await EmailSender.send(_request(text=None), MailEnvironment(recording_transport))
        assert recording_transport.sent == []

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, simple_request: EmailRequest, failing_transport: Any) -> None:
        """Transport failures surface as MailSendError with the original message."""
        transport = failing_transport(RuntimeError("quota exceeded"))

        with pytest.raises(MailSendError, match="quota exceeded") as exc_info:
            await EmailSender.send(simple_request, MailEnvironment(transport))

        assert transport.calls == 1
        assert exc_info.value.reason == "quota exceeded"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_transport_library_error_wrapped(self, simple_request: EmailRequest, failing_transport: Any) -> None:
        """Typed transport errors are wrapped too."""
        transport = failing_transport(MailTransportError("SES API error: throttled"))

        with pytest.raises(MailSendError, match="Error sending email: SES API error: throttled"):
            await EmailSender.send(simple_request, MailEnvironment(transport))

    @pytest.mark.asyncio
    async def test_sync_transport(self, simple_request: EmailRequest) -> None:
        """Sync transports run through the environment's executor wrapper."""

        class SyncTransport(MailTransport):
            def __init__(self) -> None:
                self.sent: list[OutboundMessage] = []

            def send(self, message: OutboundMessage) -> None:
                self.sent.append(message)

        transport = SyncTransport()
        await EmailSender.send(simple_request, MailEnvironment(transport))

        assert len(transport.sent) == 1
        assert transport.sent[0].from_address == "a@x.com"

    @pytest.mark.asyncio
    async def test_from_mapping_payload(self, recording_transport: Any) -> None:
        """A decoded JSON payload can be sent directly."""
        payload = {
            "from": {"address": "a@x.com", "name": "Alice"},
            "to": "b@x.com",
            "cc": [{"address": "c@x.com"}],
            "subject": "Hi",
            "html": "<b>hello</b>",
        }
        await EmailSender.send(EmailRequest.from_mapping(payload), MailEnvironment(recording_transport))

        parsed = message_from_string(recording_transport.sent[0].raw, policy=policy.default)
        assert parsed["Cc"] == "c@x.com"
        assert parsed.get_content_type() == "text/html"
