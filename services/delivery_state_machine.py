# services/delivery_state_machine.py

from datetime import datetime

from flask import current_app

from db.extensions import db
from models.courier import Courier
from services.assignment_service import CourierAssignmentService
from services.commission_service import CommissionService
from services.errors import InvalidTransitionError
from services.events import DeliveryStatusChanged, get_event_bus
from services.notification_service import NotificationService
from services.settings_service import SettingsStore
from services.waiting_fee_service import WaitingFeeService

# pending -> assigned happens only in CourierAssignmentService
TRANSITIONS = {
    'pending': ('assigned', 'cancelled'),
    'assigned': ('accepted', 'pending', 'cancelled'),
    'accepted': ('picked_up', 'cancelled'),
    'picked_up': ('in_transit', 'cancelled'),
    'in_transit': ('delivered', 'cancelled'),
    'delivered': (),
    'cancelled': (),
}

TIMEOUT_REASON = "Automatic cancellation: customer unavailable after {timeout} minutes of waiting"


class DeliveryStateMachine:
    """
    Legal delivery transitions. Each operation is one transaction covering
    the delivery, its order and its courier; events and notifications go out
    after the commit.
    """

    def __init__(self, settings=None, assignment=None, commissions=None, waiting=None,
                 notifier=NotificationService, bus=None):
        self.settings = settings or SettingsStore()
        self.bus = bus or get_event_bus()
        self.notifier = notifier
        self.assignment = assignment or CourierAssignmentService(self.settings, notifier=notifier, bus=self.bus)
        self.commissions = commissions or CommissionService(self.settings)
        self.waiting = waiting or WaitingFeeService(self.settings)

    @staticmethod
    def can_transition(delivery, target):
        return target in TRANSITIONS.get(delivery.status, ())

    def _guard(self, delivery, target, detail=None):
        if not self.can_transition(delivery, target):
            raise InvalidTransitionError(delivery.id, delivery.status, target, detail)

    def _commit(self, delivery, action):
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"❌ Delivery {delivery.id}: {action} failed: {e}")
            raise

    def _publish(self, delivery, previous_status):
        self.bus.publish(DeliveryStatusChanged(
            delivery_id=delivery.id,
            order_id=delivery.order_id,
            previous_status=previous_status,
            status=delivery.status,
            courier_id=delivery.courier_id,
        ))

    @staticmethod
    def _release_courier(courier_id):
        if courier_id is None:
            return None
        courier = (
            Courier.query.filter_by(id=courier_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if courier is not None and courier.status == 'busy':
            courier.status = 'available'
        return courier

    def accept(self, delivery, courier, now=None):
        self._guard(delivery, 'accepted')
        if delivery.courier_id != courier.id:
            raise InvalidTransitionError(delivery.id, delivery.status, 'accepted', 'not the assigned courier')

        delivery.status = 'accepted'
        delivery.accepted_at = now or datetime.utcnow()
        self._commit(delivery, 'accept')

        current_app.logger.info(f"Delivery {delivery.id} accepted by courier {courier.id}")
        self._publish(delivery, 'assigned')
        return delivery

    def reject(self, delivery, courier, reason=None, now=None):
        """
        The assigned courier refuses: back to pending, courier released, then
        an automatic reassignment. Returns the new courier or None.
        """
        self._guard(delivery, 'pending')
        if delivery.courier_id != courier.id:
            raise InvalidTransitionError(delivery.id, delivery.status, 'pending', 'not the assigned courier')

        self._release_courier(courier.id)
        delivery.status = 'pending'
        delivery.courier_id = None
        delivery.assigned_at = None
        delivery.accepted_at = None
        delivery.cancellation_reason = reason
        if delivery.order.status == 'assigned':
            delivery.order.status = 'ready'
        self._commit(delivery, 'reject')

        current_app.logger.info(f"Courier {courier.id} refused delivery {delivery.id}, re-dispatching")
        self._publish(delivery, 'assigned')

        new_courier = self.assignment.reassign_delivery(delivery, excluded_courier_id=courier.id, now=now)
        if new_courier is None:
            order = delivery.order
            self.notifier.notify(order.pharmacy.user if order.pharmacy else None, 'no_courier_available', {
                'order_reference': order.reference,
                'delivery_id': delivery.id,
            })
        return new_courier

    def pick_up(self, delivery, now=None):
        self._guard(delivery, 'picked_up')
        delivery.status = 'picked_up'
        delivery.picked_up_at = now or datetime.utcnow()
        delivery.order.status = 'in_delivery'
        self._commit(delivery, 'pick up')

        self._publish(delivery, 'accepted')
        return delivery

    def start_transit(self, delivery, now=None):
        self._guard(delivery, 'in_transit')
        delivery.status = 'in_transit'
        self._commit(delivery, 'start transit')

        self._publish(delivery, 'picked_up')
        return delivery

    def mark_arrived(self, delivery, now=None):
        """Courier at the drop-off: start the waiting timer once."""
        if delivery.status != 'in_transit':
            raise InvalidTransitionError(delivery.id, delivery.status, 'waiting', 'courier must be in transit')

        started = self.waiting.start_waiting(delivery, now)
        if not started:
            return delivery
        self._commit(delivery, 'arrival')

        order = delivery.order
        current_app.logger.info(f"⏱️  Waiting timer started for delivery {delivery.id}")
        self.notifier.notify(order.customer, 'courier_arrived', {
            'order_reference': order.reference,
            'free_minutes': self.waiting.settings()['free_minutes'],
        })
        return delivery

    def deliver(self, delivery, now=None):
        """
        Completes the delivery, then settles the order commission. The
        commission call is the primary settlement trigger; a failure there
        leaves the order delivered and is picked up by the settlement sweep.
        """
        self._guard(delivery, 'delivered')
        now = now or datetime.utcnow()
        order = delivery.order

        self.waiting.stop_waiting(delivery, now)
        delivery.status = 'delivered'
        delivery.delivered_at = now
        order.status = 'delivered'
        order.delivered_at = now

        courier = self._release_courier(delivery.courier_id)
        if courier is not None:
            courier.completed_deliveries = (courier.completed_deliveries or 0) + 1
        self._commit(delivery, 'deliver')

        current_app.logger.info(f"✅ Delivery {delivery.id} delivered (order {order.reference})")
        self._publish(delivery, 'in_transit')
        payload = {'order_reference': order.reference, 'waiting_fee': delivery.waiting_fee}
        self.notifier.notify(order.customer, 'delivery_delivered', payload)
        self.notifier.notify(order.pharmacy.user if order.pharmacy else None, 'delivery_delivered', payload)

        self.commissions.calculate_and_distribute(order)
        return delivery

    def cancel(self, delivery, reason=None, cancelled_by=None, now=None):
        self._guard(delivery, 'cancelled')
        now = now or datetime.utcnow()
        previous_status = delivery.status
        order = delivery.order

        self.waiting.stop_waiting(delivery, now)
        courier = self._release_courier(delivery.courier_id)
        delivery.status = 'cancelled'
        delivery.cancelled_at = now
        delivery.cancellation_reason = reason
        order.status = 'cancelled'
        self._commit(delivery, 'cancel')

        current_app.logger.info(f"Delivery {delivery.id} cancelled by {cancelled_by or 'unknown'}: {reason}")
        self._publish(delivery, previous_status)
        payload = {'order_reference': order.reference, 'reason': reason}
        self.notifier.notify(order.customer, 'delivery_cancelled', payload)
        if courier is not None:
            self.notifier.notify(courier.user, 'delivery_cancelled', payload)
        return delivery

    def auto_cancel_for_timeout(self, delivery, settings, now):
        """
        Waiting timer ran out: cancel with the final waiting fee, free the
        courier and notify customer, courier and pharmacy.
        """
        self._guard(delivery, 'cancelled')
        order = delivery.order
        waiting_minutes = self.waiting.waiting_minutes(delivery, now)
        fee = self.waiting.fee_for(waiting_minutes, settings['fee_per_minute'], settings['free_minutes'])

        delivery.status = 'cancelled'
        delivery.waiting_ended_at = now
        delivery.waiting_fee = max(delivery.waiting_fee or 0, fee)
        delivery.auto_cancelled_at = now
        delivery.cancelled_at = now
        delivery.cancellation_reason = TIMEOUT_REASON.format(timeout=settings['timeout_minutes'])
        order.status = 'cancelled'
        courier = self._release_courier(delivery.courier_id)
        self._commit(delivery, 'timeout cancellation')

        current_app.logger.info(
            f"Delivery {delivery.id} cancelled by timeout "
            f"(order {order.id}, waited {waiting_minutes} min, fee {delivery.waiting_fee})"
        )
        self._publish(delivery, 'in_transit')

        payload = {
            'order_reference': order.reference,
            'waiting_minutes': waiting_minutes,
            'waiting_fee': delivery.waiting_fee,
        }
        self.notifier.notify(order.customer, 'delivery_timeout_cancelled', dict(payload, audience='customer'))
        if courier is not None:
            self.notifier.notify(courier.user, 'delivery_timeout_cancelled', dict(payload, audience='courier'))
        if order.pharmacy is not None:
            self.notifier.notify(order.pharmacy.user, 'delivery_timeout_cancelled', dict(payload, audience='pharmacy'))
        return delivery
