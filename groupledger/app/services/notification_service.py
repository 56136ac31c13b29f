"""
services/notification_service.py — Email notifications for ledger events.

Called by routes AFTER the transaction has committed. Notification failures
are logged and swallowed here: a mail relay outage must never turn a
recorded expense or settlement into an error response.

CSV batch imports do not notify; a 500-row file would otherwise send up to
500 mails per member.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from groupledger.app.models.expense import Expense
from groupledger.app.models.settlement import Settlement
from groupledger.app.services import queries

logger = logging.getLogger(__name__)


def format_cents(cent_amount: int) -> str:
    """1234 → '$12.34'. Integer arithmetic only."""
    sign = "-" if cent_amount < 0 else ""
    dollars, cents = divmod(abs(cent_amount), 100)
    return f"{sign}${dollars}.{cents:02d}"


def _safe_send(notifier, to: str, subject: str, body: str) -> None:
    try:
        notifier.send(to, subject, body)
    except Exception:
        logger.exception("Failed to send notification %r to %s", subject, to)


def notify_expense_created(expense: Expense, session: Session, notifier) -> None:
    """Mails the payer and every participant of a new expense, once each."""
    group = expense.group
    amounts = {split.group_member_id: split.cent_amount for split in expense.splits}

    recipient_ids = list(dict.fromkeys([expense.paid_by, *amounts]))
    payer = queries.get_member_in_group(expense.paid_by, expense.group_id, session)
    payer_name = payer.user.name if payer else "A former member"

    for member_id in recipient_ids:
        member = queries.get_member_in_group(member_id, expense.group_id, session)
        if member is None:
            continue

        share = amounts.get(member_id)
        share_line = (
            f"Your share: {format_cents(share)}"
            if share is not None
            else "You are not sharing this expense."
        )
        body = (
            f"Hi {member.user.name},\n\n"
            f"A new expense was added in {group.name}.\n\n"
            f"Description: {expense.description}\n"
            f"Amount: {format_cents(expense.cent_amount)}\n"
            f"Paid by: {payer_name}\n"
            f"{share_line}\n"
        )
        _safe_send(notifier, member.user.email, f"New expense - {group.name}", body)


def notify_settlement_recorded(settlement: Settlement, session: Session, notifier) -> None:
    """Mails both parties of a settlement."""
    group = settlement.group
    payer = queries.get_member_in_group(settlement.from_member_id, settlement.group_id, session)
    receiver = queries.get_member_in_group(settlement.to_member_id, settlement.group_id, session)
    if payer is None or receiver is None:
        return

    amount = format_cents(settlement.cent_amount)
    notes = settlement.notes or "None"

    _safe_send(
        notifier,
        payer.user.email,
        f"Payment recorded - {group.name}",
        (
            f"Hi {payer.user.name},\n\n"
            f"Your payment has been recorded in {group.name}.\n\n"
            f"Amount: {amount}\n"
            f"Paid to: {receiver.user.name}\n"
            f"Notes: {notes}\n"
        ),
    )
    _safe_send(
        notifier,
        receiver.user.email,
        f"You received a payment - {group.name}",
        (
            f"Hi {receiver.user.name},\n\n"
            f"You received a payment in {group.name}.\n\n"
            f"Amount: {amount}\n"
            f"From: {payer.user.name}\n"
            f"Notes: {notes}\n"
        ),
    )
