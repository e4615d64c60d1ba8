"""
Revision forker tests.

Verifies:
- Numbering: Q000045 -> Q000045-R1 -> Q000045-R2, parent always the root
- Line items are cloned with customer prices cleared
- The original quote is left untouched
- Comment side effects are best effort
- Lineage listing
"""

from decimal import Decimal

import pytest

from cutquote.errors import AuthorizationError, NotFoundError, StateConflictError
from cutquote.models import Comment, Quote
from cutquote.services import revision_service
from cutquote.services.audit_service import list_audit_entries
from cutquote.services.revision_service import base_quote_number


@pytest.fixture
def root_quote(customer, operator, make_quote):
    return make_quote(
        customer,
        status="sent",
        operator=operator,
        quote_number="Q000045",
        total_cutting_price=Decimal("25.00"),
        total_customer_price=Decimal("50.00"),
        items=[
            {"cutting_price": 10, "customer_price": 20, "production_time_hours": 1, "quantity": 1},
            {"cutting_price": 15, "customer_price": 30, "quantity": 1, "part_dimensions": {"w": 100, "h": 40}},
        ],
    )


class TestNumbering:

    @pytest.mark.parametrize(
        "number,expected",
        [("Q000045", "Q000045"), ("Q000045-R1", "Q000045"), ("Q000045-R12", "Q000045")],
    )
    def test_base_quote_number(self, number, expected):
        assert base_quote_number(number) == expected

    def test_chain_points_at_root(self, db_session, root_quote, admin, actor_of):
        r1 = revision_service.create_revision(root_quote.id, actor_of(admin)).quote
        r2 = revision_service.create_revision(r1.id, actor_of(admin)).quote

        assert (r1.quote_number, r1.revision_number, r1.parent_quote_id) == ("Q000045-R1", 1, root_quote.id)
        assert (r2.quote_number, r2.revision_number, r2.parent_quote_id) == ("Q000045-R2", 2, root_quote.id)

    def test_duplicate_revision_number_is_conflict(self, db_session, root_quote, admin, actor_of):
        revision_service.create_revision(root_quote.id, actor_of(admin))
        with pytest.raises(StateConflictError):
            revision_service.create_revision(root_quote.id, actor_of(admin))


class TestForkContents:

    def test_copies_fields_and_clears_customer_prices(self, db_session, root_quote, admin, actor_of):
        revision = revision_service.create_revision(root_quote.id, actor_of(admin)).quote

        assert revision.status == "ready_for_pricing"
        assert revision.customer_id == root_quote.customer_id
        assert revision.operator_id == root_quote.operator_id
        assert revision.shipping_address == root_quote.shipping_address
        assert revision.total_cutting_price == Decimal("25.00")
        assert revision.total_customer_price is None
        assert revision.notes == "Revision of Q000045"

        items = revision.line_items
        assert len(items) == 2
        assert [i.cutting_price for i in items] == [Decimal("10.00"), Decimal("15.00")]
        assert all(i.customer_price is None for i in items)
        assert items[1].part_dimensions == {"w": 100, "h": 40}

    def test_original_untouched(self, db_session, root_quote, admin, actor_of):
        revision_service.create_revision(root_quote.id, actor_of(admin))

        original = db_session.get(Quote, root_quote.id)
        assert original.status == "sent"
        assert original.total_customer_price == Decimal("50.00")
        assert [i.customer_price for i in original.line_items] == [Decimal("20.00"), Decimal("30.00")]

    def test_allowed_from_any_status(self, db_session, customer, admin, make_quote, actor_of):
        quote = make_quote(customer, status="declined")
        result = revision_service.create_revision(quote.id, actor_of(admin), "Customer changed mind")
        assert result.quote.notes == "Customer changed mind"

    def test_admin_only(self, db_session, root_quote, operator, actor_of):
        with pytest.raises(AuthorizationError):
            revision_service.create_revision(root_quote.id, actor_of(operator))

    def test_missing_original(self, db_session, admin, actor_of):
        with pytest.raises(NotFoundError):
            revision_service.create_revision(123456, actor_of(admin))


class TestSideEffects:

    def test_comments_and_audit(self, db_session, root_quote, admin, actor_of):
        result = revision_service.create_revision(root_quote.id, actor_of(admin), "thicker steel")

        on_original = db_session.query(Comment).filter_by(quote_id=root_quote.id).one()
        on_revision = db_session.query(Comment).filter_by(quote_id=result.quote.id).one()
        assert on_original.content == "Revision Q000045-R1 created: thicker steel"
        assert on_revision.content == "Revision of Q000045: thicker steel"
        assert on_original.visibility == "internal"
        assert result.warnings == []

        actions = [e.action for e in list_audit_entries("quotes", result.quote.id)]
        assert "revision_created" in actions

    def test_comment_failure_does_not_fail_fork(self, db_session, root_quote, admin, actor_of, monkeypatch):
        def _fail(*args, **kwargs):
            raise RuntimeError("comments table locked")

        monkeypatch.setattr(revision_service, "add_system_comment", _fail)

        result = revision_service.create_revision(root_quote.id, actor_of(admin))

        assert db_session.get(Quote, result.quote.id).quote_number == "Q000045-R1"
        assert result.warnings == ["comment on original failed", "comment on revision failed"]


class TestLineage:

    def test_lists_root_and_revisions(self, db_session, root_quote, admin, actor_of):
        r1 = revision_service.create_revision(root_quote.id, actor_of(admin)).quote
        revision_service.create_revision(r1.id, actor_of(admin))

        numbers = [q.quote_number for q in revision_service.get_lineage(r1.id, actor_of(admin))]

        assert numbers == ["Q000045", "Q000045-R1", "Q000045-R2"]
