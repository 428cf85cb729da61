# services/notification_service.py

from flask import current_app
from services.utils import send_email

SUBJECTS = {
    'delivery_assigned': "New delivery assigned - Order {order_reference}",
    'delivery_reassigned': "Delivery reassigned - Order {order_reference}",
    'delivery_status_changed': "Delivery update - Order {order_reference}",
    'courier_arrived': "Your courier has arrived - Order {order_reference}",
    'delivery_delivered': "Order {order_reference} delivered",
    'delivery_cancelled': "Delivery cancelled - Order {order_reference}",
    'delivery_timeout_cancelled': "Delivery cancelled after waiting - Order {order_reference}",
    'no_courier_available': "No courier available - Order {order_reference}",
}


class NotificationService:
    """
    Fire-and-forget notifications. Called after the owning transaction has
    committed; a failed send is logged and never raised.
    """

    @staticmethod
    def notify(recipient, event_type, payload=None):
        payload = payload or {}
        try:
            if recipient is None:
                current_app.logger.debug(f"Notification {event_type} skipped: no recipient")
                return False

            email = getattr(recipient, 'email', None)
            current_app.logger.info(
                f"🔔 Notify {type(recipient).__name__} {getattr(recipient, 'id', None)}: {event_type}"
            )
            if not email:
                return False

            subject = SUBJECTS.get(event_type, event_type.replace('_', ' ').capitalize())
            subject = subject.format(order_reference=payload.get('order_reference', ''))

            lines = [f"Hello {getattr(recipient, 'name', '')},", ""]
            lines += [f"{key.replace('_', ' ').capitalize()}: {value}" for key, value in payload.items()]
            return send_email(subject, [email], "\n".join(lines))
        except Exception as e:
            current_app.logger.error(f"Failed to send {event_type} notification: {e}")
            return False
