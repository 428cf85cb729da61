from datetime import timedelta

import pytest

from db.extensions import db
from models.actor import CourierActor, PharmacyActor, PlatformActor
from models.commission import Commission
from models.courier import Courier
from services.delivery_state_machine import DeliveryStateMachine
from services.errors import InvalidTransitionError
from services.events import DeliveryStatusChanged
from services.wallet_service import WalletService

from tests.conftest import NOW


def courier_status(courier):
    return db.session.get(Courier, courier.id).status


def test_happy_path(make, machine, notifier):
    courier = make.courier(completed=4)
    delivery = make.delivery('assigned', courier=courier)
    order = delivery.order

    machine.accept(delivery, courier, now=NOW)
    assert delivery.status == 'accepted'
    assert delivery.accepted_at == NOW

    machine.pick_up(delivery, now=NOW + timedelta(minutes=10))
    assert delivery.status == 'picked_up'
    assert order.status == 'in_delivery'

    machine.start_transit(delivery)
    assert delivery.status == 'in_transit'

    machine.mark_arrived(delivery, now=NOW + timedelta(minutes=30))
    assert delivery.waiting_started_at == NOW + timedelta(minutes=30)
    assert len(notifier.events('courier_arrived')) == 1

    machine.deliver(delivery, now=NOW + timedelta(minutes=35))
    assert delivery.status == 'delivered'
    assert delivery.delivered_at == NOW + timedelta(minutes=35)
    assert delivery.waiting_ended_at == NOW + timedelta(minutes=35)
    assert delivery.waiting_fee == 300
    assert order.status == 'delivered'

    courier = db.session.get(Courier, courier.id)
    assert courier.status == 'available'
    assert courier.completed_deliveries == 5
    assert len(notifier.events('delivery_delivered')) == 2


def test_deliver_settles_commission_once(make, machine):
    courier = make.courier()
    delivery = make.delivery('in_transit', courier=courier, total_amount=10000)

    machine.deliver(delivery, now=NOW)

    assert Commission.query.filter_by(order_id=delivery.order_id).count() == 1
    assert WalletService.balance(PlatformActor()) == 1000
    assert WalletService.balance(PharmacyActor(delivery.order.pharmacy_id)) == 8500
    assert WalletService.balance(CourierActor(courier.id)) == 500

    with pytest.raises(InvalidTransitionError):
        machine.deliver(delivery, now=NOW)
    assert Commission.query.count() == 1


def test_commission_failure_is_raised_after_delivery_commit(make, settings, notifier, bus):
    class BrokenCommissions:
        def calculate_and_distribute(self, order):
            raise RuntimeError("ledger unavailable")

    machine = DeliveryStateMachine(settings, commissions=BrokenCommissions(), notifier=notifier, bus=bus)
    courier = make.courier()
    delivery = make.delivery('in_transit', courier=courier)

    with pytest.raises(RuntimeError):
        machine.deliver(delivery, now=NOW)

    db.session.expire_all()
    assert delivery.status == 'delivered'
    assert Commission.query.count() == 0


def test_only_assigned_courier_can_accept(make, machine):
    courier = make.courier()
    other = make.courier()
    delivery = make.delivery('assigned', courier=courier)

    with pytest.raises(InvalidTransitionError):
        machine.accept(delivery, other, now=NOW)
    assert delivery.status == 'assigned'


@pytest.mark.parametrize('status, action', [
    ('pending', 'pick_up'),
    ('assigned', 'pick_up'),
    ('accepted', 'start_transit'),
    ('assigned', 'deliver'),
    ('picked_up', 'deliver'),
])
def test_skipping_a_step_is_rejected(make, machine, status, action):
    delivery = make.delivery(status, courier=make.courier() if status != 'pending' else None)

    with pytest.raises(InvalidTransitionError) as excinfo:
        getattr(machine, action)(delivery, now=NOW)

    assert excinfo.value.current == status
    assert delivery.status == status


@pytest.mark.parametrize('status', ['delivered', 'cancelled'])
def test_terminal_states_are_final(make, machine, status):
    courier = make.courier()
    delivery = make.delivery(status, courier=courier)

    for action in (machine.pick_up, machine.start_transit, machine.deliver, machine.cancel):
        with pytest.raises(InvalidTransitionError):
            action(delivery, now=NOW)
    with pytest.raises(InvalidTransitionError):
        machine.accept(delivery, courier, now=NOW)
    assert delivery.status == status


def test_mark_arrived_requires_transit(make, machine):
    delivery = make.delivery('picked_up', courier=make.courier())

    with pytest.raises(InvalidTransitionError):
        machine.mark_arrived(delivery, now=NOW)
    assert delivery.waiting_started_at is None


def test_mark_arrived_is_idempotent(make, machine, notifier):
    delivery = make.delivery('in_transit', courier=make.courier())

    machine.mark_arrived(delivery, now=NOW)
    machine.mark_arrived(delivery, now=NOW + timedelta(minutes=4))

    assert delivery.waiting_started_at == NOW
    assert len(notifier.events('courier_arrived')) == 1


def test_reject_reassigns_to_another_courier(make, machine, notifier):
    refusing = make.courier()
    other = make.courier()
    delivery = make.delivery('assigned', courier=refusing)

    new_courier = machine.reject(delivery, refusing, reason='Too far', now=NOW)

    assert new_courier.id == other.id
    assert delivery.courier_id == other.id
    assert delivery.status == 'assigned'
    assert courier_status(refusing) == 'available'
    assert courier_status(other) == 'busy'
    assert notifier.events('no_courier_available') == []


def test_reject_without_alternative_alerts_pharmacy(make, machine, notifier):
    refusing = make.courier()
    delivery = make.delivery('assigned', courier=refusing)

    assert machine.reject(delivery, refusing, now=NOW) is None

    assert delivery.status == 'pending'
    assert delivery.courier_id is None
    assert delivery.order.status == 'ready'
    assert courier_status(refusing) == 'available'
    sent = notifier.events('no_courier_available')
    assert len(sent) == 1
    assert sent[0][0].id == delivery.order.pharmacy.user_id


def test_cancel_releases_courier(make, machine, notifier):
    courier = make.courier()
    delivery = make.delivery('accepted', courier=courier)

    machine.cancel(delivery, reason='Customer request', cancelled_by='customer', now=NOW)

    assert delivery.status == 'cancelled'
    assert delivery.cancelled_at == NOW
    assert delivery.cancellation_reason == 'Customer request'
    assert delivery.order.status == 'cancelled'
    assert courier_status(courier) == 'available'
    assert len(notifier.events('delivery_cancelled')) == 2


def test_cancel_pending_delivery(make, machine):
    delivery = make.delivery('pending')

    machine.cancel(delivery, reason='Out of stock', now=NOW)

    assert delivery.status == 'cancelled'


def test_transitions_publish_events(make, machine, bus):
    received = []
    bus.subscribe(DeliveryStatusChanged, received.append)
    courier = make.courier()
    delivery = make.delivery('assigned', courier=courier)

    machine.accept(delivery, courier, now=NOW)
    machine.pick_up(delivery, now=NOW)
    machine.start_transit(delivery, now=NOW)

    assert [(event.previous_status, event.status) for event in received] == [
        ('assigned', 'accepted'),
        ('accepted', 'picked_up'),
        ('picked_up', 'in_transit'),
    ]
