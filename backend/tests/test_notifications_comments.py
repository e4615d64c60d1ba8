"""
Notification queue and comment thread tests.

Verifies:
- Recipient resolution per template and recipient override
- notify() never raises
- Comment visibility rules per role
"""

import pytest

from cutquote.errors import AuthorizationError, NotFoundError, ValidationError
from cutquote.models import EmailQueueEntry
from cutquote.services import comment_service, notification_service
from cutquote.services.audit_service import list_audit_entries


# =============================================================================
# EMAIL QUEUE
# =============================================================================


class TestQueueEmail:

    def test_new_quote_goes_to_active_operators(self, db_session, customer, operator, make_user, make_quote):
        make_user("operator", is_active=False)
        quote = make_quote(customer)

        entries = notification_service.queue_email("new_quote_created", quote.id)

        assert [e.to_email for e in entries] == [operator.email]
        assert entries[0].template_data["quote_number"] == quote.quote_number
        assert entries[0].template_data["subject"] == "New quote in queue"

    def test_recipient_override(self, db_session, customer, make_quote):
        quote = make_quote(customer)
        entries = notification_service.queue_email("quote_sent", quote.id, " buyer@acme.example ")
        assert [e.to_email for e in entries] == ["buyer@acme.example"]

    def test_audit_row_written(self, db_session, customer, make_quote):
        quote = make_quote(customer)
        notification_service.queue_email("quote_sent", quote.id)

        entry = list_audit_entries("email_queue", quote.id)[0]
        assert entry.action == "emails_queued"
        assert entry.new_data["recipients"] == [customer.email]

    def test_unknown_template(self, db_session, customer, make_quote):
        quote = make_quote(customer)
        with pytest.raises(ValidationError):
            notification_service.queue_email("quote_exploded", quote.id)

    def test_missing_quote(self, db_session):
        with pytest.raises(NotFoundError):
            notification_service.queue_email("quote_sent", 999999)

    def test_notify_swallows_failures(self, db_session):
        assert notification_service.notify("quote_sent", 999999) is False
        assert db_session.query(EmailQueueEntry).count() == 0


# =============================================================================
# COMMENTS
# =============================================================================


class TestComments:

    def test_customer_sees_only_public(self, db_session, customer, operator, make_quote, actor_of):
        quote = make_quote(customer)
        comment_service.add_comment(quote.id, actor_of(operator), "Check the hole spacing", "internal")
        comment_service.add_comment(quote.id, actor_of(operator), "We are reviewing your drawing")

        staff_view = comment_service.list_comments(quote.id, actor_of(operator))
        customer_view = comment_service.list_comments(quote.id, actor_of(customer))

        assert len(staff_view) == 2
        assert [c.content for c in customer_view] == ["We are reviewing your drawing"]

    def test_customer_cannot_post_internal(self, db_session, customer, make_quote, actor_of):
        quote = make_quote(customer)
        with pytest.raises(AuthorizationError):
            comment_service.add_comment(quote.id, actor_of(customer), "psst", "internal")

    def test_other_customer_gets_not_found(self, db_session, customer, other_customer, make_quote, actor_of):
        quote = make_quote(customer)
        with pytest.raises(NotFoundError):
            comment_service.add_comment(quote.id, actor_of(other_customer), "hello")

    @pytest.mark.parametrize("content", ["", "   ", None, "x" * 5001])
    def test_content_rules(self, db_session, customer, make_quote, actor_of, content):
        quote = make_quote(customer)
        with pytest.raises(ValidationError):
            comment_service.add_comment(quote.id, actor_of(customer), content)

    def test_unknown_visibility(self, db_session, customer, admin, make_quote, actor_of):
        quote = make_quote(customer)
        with pytest.raises(ValidationError):
            comment_service.add_comment(quote.id, actor_of(admin), "hi", "secret")
