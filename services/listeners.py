# services/listeners.py

from flask import current_app

from db.extensions import db
from models.delivery import Delivery
from services.commission_service import CommissionService
from services.events import DeliveryStatusChanged, PaymentConfirmed
from services.notification_service import NotificationService

# Statuses the customer hears about through the generic update
CUSTOMER_VISIBLE_STATUSES = ('assigned', 'accepted', 'picked_up', 'in_transit')


def notify_customer_of_status(event, notifier=NotificationService):
    if event.status not in CUSTOMER_VISIBLE_STATUSES:
        return
    delivery = db.session.get(Delivery, event.delivery_id)
    if delivery is None:
        return
    notifier.notify(delivery.order.customer, 'delivery_status_changed', {
        'order_reference': delivery.order.reference,
        'status': event.status,
    })


def register_listeners(bus, commissions=None, notifier=NotificationService):
    commissions = commissions or CommissionService()

    def on_payment_confirmed(event):
        current_app.logger.info(f"Payment {event.reference} confirmed for order {event.order_id}")
        commissions.handle_payment_confirmed(event)

    bus.subscribe(DeliveryStatusChanged, lambda event: notify_customer_of_status(event, notifier))
    bus.subscribe(PaymentConfirmed, on_payment_confirmed)
    return bus
