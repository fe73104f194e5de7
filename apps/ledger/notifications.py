"""
Ledger notifications.

Notifications are fire-and-forget: they are dispatched after the ledger
transaction commits and a failing dispatcher never affects the ledger.
The dispatcher is any callable ``dispatcher(user_id, notification)``
named by the ``LEDGER_NOTIFICATION_DISPATCHER`` setting.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


def log_dispatcher(user_id, notification):
    """Default dispatcher: write the notification to the log."""
    logger.info("Notification for %s: %s", user_id, notification['message'])


def get_dispatcher():
    return import_string(settings.LEDGER_NOTIFICATION_DISPATCHER)


def large_expense_notification(expense) -> dict:
    return {
        'type': 'expense_reminder',
        'title': 'Large Expense Added',
        'message': (
            f"A large expense of {expense.amount:,} was added in "
            f"{expense.get_category_display()} ({expense.group.name})."
        ),
        'group_id': str(expense.group_id),
        'expense_id': str(expense.id),
    }


def _deliver(user_ids, notification):
    try:
        dispatcher = get_dispatcher()
    except ImportError:
        logger.exception("Notification dispatcher could not be loaded")
        return

    for user_id in user_ids:
        try:
            dispatcher(user_id, notification)
        except Exception:
            logger.exception("Failed to deliver notification to %s", user_id)


def notify_large_expense(expense, user_ids):
    """
    Schedule a large-expense notification for ``user_ids``.

    Does nothing below ``LEDGER_LARGE_EXPENSE_THRESHOLD``. Delivery happens
    on commit of the surrounding transaction.
    """
    if expense.amount < settings.LEDGER_LARGE_EXPENSE_THRESHOLD:
        return

    notification = large_expense_notification(expense)
    user_ids = [str(user_id) for user_id in user_ids]
    transaction.on_commit(lambda: _deliver(user_ids, notification))
