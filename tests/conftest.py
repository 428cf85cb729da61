from datetime import datetime, timedelta
from itertools import count

import fakeredis
import pytest

from app import create_app
from app.config import TestingConfig
from db.extensions import db
from models.courier import Courier
from models.delivery import Delivery
from models.order import Order
from models.payment import Payment
from models.pharmacy import Pharmacy
from models.user import User
from services.assignment_service import CourierAssignmentService
from services.commission_service import CommissionService
from services.delivery_state_machine import DeliveryStateMachine
from services.events import EventBus
from services.listeners import register_listeners
from services.settings_service import SettingsStore

NOW = datetime(2024, 5, 1, 12, 0, 0)

# Abidjan, Plateau
PHARMACY_LAT, PHARMACY_LON = 5.3200, -4.0200


class RecordingNotifier:
    """Stands in for NotificationService and keeps every call."""

    def __init__(self):
        self.sent = []

    def notify(self, recipient, event_type, payload=None):
        self.sent.append((recipient, event_type, payload or {}))
        return True

    def events(self, event_type=None):
        return [sent for sent in self.sent if event_type is None or sent[1] == event_type]


@pytest.fixture
def cache():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(cache, notifier):
    app = create_app(TestingConfig)
    app.extensions['redis'] = cache

    with app.app_context():
        db.create_all()

        bus = EventBus()
        register_listeners(bus, commissions=CommissionService(SettingsStore(cache=cache)), notifier=notifier)
        app.extensions['event_bus'] = bus

        yield app

        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def bus(app):
    return app.extensions['event_bus']


@pytest.fixture
def settings(app, cache):
    return SettingsStore(cache=cache)


@pytest.fixture
def assignment(settings, notifier, bus):
    return CourierAssignmentService(settings, notifier=notifier, bus=bus)


@pytest.fixture
def machine(settings, assignment, notifier, bus):
    return DeliveryStateMachine(
        settings,
        assignment=assignment,
        commissions=CommissionService(settings),
        notifier=notifier,
        bus=bus,
    )


class Factory:
    def __init__(self):
        self._seq = count(1)

    def user(self, name=None, email=None):
        n = next(self._seq)
        user = User(name=name or f"User {n}", email=email or f"user{n}@example.com")
        db.session.add(user)
        db.session.commit()
        return user

    def pharmacy(self, latitude=PHARMACY_LAT, longitude=PHARMACY_LON, commission_rate=None):
        n = next(self._seq)
        pharmacy = Pharmacy(
            name=f"Pharmacy {n}",
            user=self.user(),
            latitude=latitude,
            longitude=longitude,
            commission_rate_pharmacy=commission_rate,
        )
        db.session.add(pharmacy)
        db.session.commit()
        return pharmacy

    def courier(self, latitude=PHARMACY_LAT, longitude=PHARMACY_LON, status='available',
                rating=4.0, completed=0, seen_minutes_ago=1, vehicle_type='motorcycle'):
        courier = Courier(
            user=self.user(),
            status=status,
            rating=rating,
            completed_deliveries=completed,
            vehicle_type=vehicle_type,
        )
        if latitude is not None:
            courier.update_location(latitude, longitude, at=NOW - timedelta(minutes=seen_minutes_ago))
        db.session.add(courier)
        db.session.commit()
        return courier

    def order(self, pharmacy=None, total_amount=10000, status='ready', with_delivery=True):
        n = next(self._seq)
        pharmacy = pharmacy or self.pharmacy()
        order = Order(
            reference=f"ORD-{n:05d}",
            pharmacy=pharmacy,
            customer=self.user(),
            status=status,
            subtotal=total_amount,
            total_amount=total_amount,
            delivery_latitude=PHARMACY_LAT + 0.02,
            delivery_longitude=PHARMACY_LON + 0.02,
        )
        db.session.add(order)
        if with_delivery:
            order.delivery = Delivery(status='pending')
        db.session.commit()
        return order

    def delivery(self, status, courier=None, pharmacy=None, total_amount=10000, **fields):
        """An order whose delivery already sits in ``status``."""
        order = self.order(pharmacy=pharmacy, total_amount=total_amount, status='assigned')
        delivery = order.delivery
        delivery.status = status
        if courier is not None:
            delivery.courier_id = courier.id
            if status not in ('delivered', 'cancelled'):
                courier.status = 'busy'
        if status in ('picked_up', 'in_transit'):
            order.status = 'in_delivery'
        for key, value in fields.items():
            setattr(delivery, key, value)
        db.session.commit()
        return delivery

    def payment(self, order, status='pending', minutes_ago=10):
        n = next(self._seq)
        payment = Payment(
            order=order,
            reference=f"PAY-{n:05d}",
            amount=order.total_amount,
            status=status,
            initiated_at=NOW - timedelta(minutes=minutes_ago),
        )
        db.session.add(payment)
        db.session.commit()
        return payment


@pytest.fixture
def make(app):
    return Factory()
