"""Customer notification preference checks"""

from typing import Optional

from ...models import Customer

TRANSACTIONAL_TYPES = ("booking_confirmation",)
TRANSACTIONAL_PREFIXES = ("appointment_status_",)
MARKETING_TYPES = ("retention_reminder",)

# notification type -> customer column prefix for the per-channel toggle
PREFERENCE_FIELDS = {
    "appointment_reminder": "appointment_reminders",
    "retention_reminder": "retention_reminders",
}


def is_transactional(notification_type: str) -> bool:
    return notification_type in TRANSACTIONAL_TYPES or notification_type.startswith(TRANSACTIONAL_PREFIXES)


def check_notification_allowed(
    customer: Optional[Customer], notification_type: str, channel: str
) -> tuple[bool, Optional[str]]:
    """
    Whether the customer's preferences allow this notification.

    Returns (allowed, reason). Transactional messages and sends without a known
    customer always pass.
    """
    if customer is None or is_transactional(notification_type):
        return True, None

    if notification_type in MARKETING_TYPES and customer.marketing_opt_out:
        return False, "Customer opted out of marketing"

    field = PREFERENCE_FIELDS.get(notification_type)
    if field:
        enabled = getattr(customer, f"{channel}_{field}", True)
        if enabled is False:
            return False, f"Customer disabled {channel} {field.replace('_', ' ')}"

    return True, None
