# Overview: Template-driven e-mail queue; the engine's notification collaborator.

"""
Notification Service

WHY: Lifecycle events (new quote, quote sent, quote accepted, revision
requested) must reach customers, operators and admins. The engine never
sends mail itself: it resolves recipients for a template and inserts rows
into email_queue for an external delivery worker.

FIRE-AND-FORGET:
- queue_email() is strict and raises typed errors (used by the API)
- notify() wraps it for engine-internal use: any failure is logged and
  swallowed, and the triggering status change is never rolled back
- notify() is always called AFTER the triggering transaction committed
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import EmailQueueEntry, Quote, User
from ..validation import optional_text
from .audit_service import append_audit_entry
from cutquote.time_utils import to_iso_date
from ..models.quotes import money_str


RECIPIENT_CUSTOMER = "customer"
RECIPIENT_ADMIN = "admin"
RECIPIENT_OPERATORS = "operators"

EMAIL_TEMPLATES: dict[str, dict] = {
    "new_quote_created": {
        "subject": "New quote in queue",
        "recipients": [RECIPIENT_OPERATORS],
    },
    "quote_needs_attention": {
        "subject": "Action required for your quote",
        "recipients": [RECIPIENT_CUSTOMER],
    },
    "quote_sent": {
        "subject": "Your quote is ready for review",
        "recipients": [RECIPIENT_CUSTOMER],
    },
    "revision_sent": {
        "subject": "Your updated quote is ready",
        "recipients": [RECIPIENT_CUSTOMER],
    },
    "quote_accepted": {
        "subject": "Quote accepted",
        "recipients": [RECIPIENT_ADMIN],
    },
    "revision_requested": {
        "subject": "Revision request received",
        "recipients": [RECIPIENT_ADMIN],
    },
}


def _template_data(quote: Quote, extra: dict | None = None) -> dict:
    customer = quote.customer
    data = {
        "quote_id": quote.id,
        "quote_number": quote.quote_number,
        "status": quote.status,
        "customer_name": customer.name if customer else None,
        "customer_email": customer.email if customer else None,
        "company_name": customer.company_name if customer else None,
        "total_amount": money_str(quote.total_customer_price),
        "deadline": to_iso_date(quote.deadline),
    }
    if extra:
        data.update(extra)
    return data


def _resolve_recipients(recipient_type: str, quote: Quote) -> list[str]:
    if recipient_type == RECIPIENT_CUSTOMER:
        if quote.customer and quote.customer.email:
            return [quote.customer.email]
        return []
    if recipient_type == RECIPIENT_ADMIN:
        return [current_app.config["ADMIN_EMAIL"]]
    if recipient_type == RECIPIENT_OPERATORS:
        operators = (
            db.session.query(User)
            .filter_by(role="operator", is_active=True)
            .order_by(User.id.asc())
            .all()
        )
        return [op.email for op in operators if op.email]
    raise ValueError(f"Unknown recipient type '{recipient_type}'")


def queue_email(
    template_id: str,
    quote_id: int,
    recipient_override: str | None = None,
    *,
    actor_user_id: int | None = None,
    extra_data: dict | None = None,
) -> list[EmailQueueEntry]:
    """
    Queue one e-mail per resolved recipient of template_id for quote_id.

    recipient_override replaces every resolved recipient with one address.
    Returns the queued rows (possibly empty when nobody matches).
    """
    if not template_id or not quote_id:
        raise ValidationError("template_id and quote_id are required")

    if not isinstance(template_id, str) or isinstance(quote_id, bool) or not isinstance(quote_id, int):
        raise ValidationError("template_id must be a string and quote_id an integer")
    recipient_override = optional_text(recipient_override, "recipient_override")

    template = EMAIL_TEMPLATES.get(template_id)
    if template is None:
        raise ValidationError(f"Unknown email template '{template_id}'")

    quote = db.session.query(Quote).filter_by(id=quote_id).first()
    if not quote:
        raise NotFoundError(f"Quote {quote_id} not found")

    if recipient_override:
        recipients = [recipient_override]
    else:
        recipients = []
        for recipient_type in template["recipients"]:
            for email in _resolve_recipients(recipient_type, quote):
                if email not in recipients:
                    recipients.append(email)

    data = _template_data(quote, extra_data)
    data["subject"] = template["subject"]

    entries = []
    for email in recipients:
        entry = EmailQueueEntry(
            quote_id=quote.id,
            to_email=email,
            template_id=template_id,
            template_data=data,
            status="pending",
        )
        db.session.add(entry)
        entries.append(entry)

    if entries:
        append_audit_entry(
            table_name="email_queue",
            record_id=quote.id,
            action="emails_queued",
            user_id=actor_user_id,
            new_data={
                "template_id": template_id,
                "emails_count": len(entries),
                "recipients": recipients,
            },
        )

    db.session.commit()
    return entries


def notify(
    template_id: str,
    quote_id: int,
    recipient_override: str | None = None,
    **kwargs,
) -> bool:
    """
    Fire-and-forget queue_email. Returns True when rows were queued.

    Never raises: delivery problems must not undo the committed operation
    that triggered the notification.
    """
    try:
        return bool(queue_email(template_id, quote_id, recipient_override, **kwargs))
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to queue '%s' notification for quote %s", template_id, quote_id
        )
        return False


def list_queue(status: str = "pending", limit: int = 50) -> list[EmailQueueEntry]:
    limit = max(1, min(limit, 200))
    return (
        db.session.query(EmailQueueEntry)
        .filter_by(status=status)
        .order_by(EmailQueueEntry.created_at.desc(), EmailQueueEntry.id.desc())
        .limit(limit)
        .all()
    )
