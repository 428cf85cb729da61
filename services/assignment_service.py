# services/assignment_service.py

import math
from datetime import datetime

from flask import current_app

from db.extensions import db
from models.courier import Courier
from models.delivery import Delivery
from services.courier_pool import CourierPool
from services.errors import InvalidTransitionError, MissingCoordinatesError
from services.events import DeliveryStatusChanged, get_event_bus
from services.geo import distance_km, valid_coordinates
from services.notification_service import NotificationService
from services.settings_service import SettingsStore
from services.utils import minutes_between

# Score weights (points); higher total wins
DISTANCE_POINTS = 40
RATING_POINTS = 30
EXPERIENCE_POINTS = 20
ACTIVITY_POINTS = 10
DEFAULT_RATING = 3.0

VEHICLE_SPEEDS_KMH = {
    'motorcycle': 30,
    'car': 25,
    'bicycle': 15,
    'on_foot': 5,
}
DEFAULT_SPEED_KMH = 25
HANDLING_BUFFER_MINUTES = 10

REASSIGNABLE_STATUSES = ('pending', 'assigned')


class CourierAssignmentService:
    """
    Picks one courier per delivery and claims it.

    Candidates come from the courier pool (available, fresh position, within
    the search radius) and are ranked by a composite score: distance (0-40),
    rating (0-30), completed deliveries (0-20) and position recency (0-10).
    Ties go to the closer courier, then to the lower courier id.
    """

    def __init__(self, settings=None, pool=None, notifier=NotificationService, bus=None):
        self.settings = settings or SettingsStore()
        self.pool = pool or CourierPool(self.settings)
        self.notifier = notifier
        self.bus = bus or get_event_bus()

    # Scoring

    def score(self, candidate, radius_km, now):
        courier = candidate.courier
        score = 0.0

        if radius_km > 0:
            score += max(0.0, DISTANCE_POINTS - candidate.distance_km * (DISTANCE_POINTS / radius_km))

        rating = courier.rating if courier.rating is not None else DEFAULT_RATING
        score += (min(rating, 5) / 5) * RATING_POINTS

        score += min(EXPERIENCE_POINTS, (courier.completed_deliveries or 0) / 5)

        if courier.last_location_update:
            idle_minutes = minutes_between(courier.last_location_update, now)
            score += max(0.0, ACTIVITY_POINTS - idle_minutes / 6)

        return round(score, 2)

    def rank(self, candidates, radius_km, now):
        scored = [(self.score(candidate, radius_km, now), candidate) for candidate in candidates]
        scored.sort(key=lambda item: (-item[0], item[1].distance_km, item[1].courier.id))
        return scored

    # Assignment

    def assign_courier(self, order, now=None):
        """
        Auto-assign the best courier to ``order``. Returns the Delivery, or
        None when nobody is available (nothing is modified in that case).
        """
        delivery = order.delivery
        if delivery is not None and delivery.status != 'pending':
            current_app.logger.info(f"Order {order.reference} already has a delivery ({delivery.status})")
            return delivery

        pharmacy = order.pharmacy
        if pharmacy is None or not valid_coordinates(pharmacy.latitude, pharmacy.longitude):
            current_app.logger.warning(f"Pharmacy {order.pharmacy_id} has no GPS coordinates")
            raise MissingCoordinatesError('Pharmacy', order.pharmacy_id)

        return self._select_and_assign(order, pharmacy.latitude, pharmacy.longitude, now=now)

    def assign_specific_courier(self, order, courier, now=None):
        """Manual override. None when the courier is not available."""
        delivery = order.delivery
        if delivery is not None and delivery.status != 'pending':
            current_app.logger.info(f"Order {order.reference} already has a delivery ({delivery.status})")
            return delivery

        delivery = self._claim(order, courier, now or datetime.utcnow())
        if delivery is None:
            current_app.logger.warning(f"Courier {courier.id} is not available (status: {courier.status})")
        return delivery

    def reassign_delivery(self, delivery, excluded_courier_id=None, reason=None, now=None):
        """
        Release the current courier, put the delivery back to pending and
        assign the next best courier, never the one just released.
        """
        if delivery.status not in REASSIGNABLE_STATUSES:
            raise InvalidTransitionError(delivery.id, delivery.status, 'pending', 'cannot reassign')

        previous_courier_id = delivery.courier_id or excluded_courier_id
        previous_status = delivery.status
        try:
            if delivery.courier_id is not None:
                self._release(delivery.courier_id)
            delivery.courier_id = None
            delivery.status = 'pending'
            delivery.assigned_at = None
            delivery.accepted_at = None
            if reason:
                delivery.cancellation_reason = reason
            if delivery.order.status == 'assigned':
                delivery.order.status = 'ready'
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"❌ Failed to reset delivery {delivery.id} for reassignment: {e}")
            raise

        if previous_status != 'pending':
            self._publish(delivery, previous_status)

        origin_lat = delivery.pickup_latitude
        origin_lon = delivery.pickup_longitude
        if not valid_coordinates(origin_lat, origin_lon):
            pharmacy = delivery.order.pharmacy
            origin_lat = pharmacy.latitude if pharmacy else None
            origin_lon = pharmacy.longitude if pharmacy else None
        if not valid_coordinates(origin_lat, origin_lon):
            raise MissingCoordinatesError('Delivery', delivery.id)

        result = self._select_and_assign(
            delivery.order, origin_lat, origin_lon,
            exclude_ids=[previous_courier_id], now=now,
        )
        if result is None:
            current_app.logger.warning(f"No alternative courier found for delivery {delivery.id}")
            return None

        current_app.logger.info(
            f"Delivery {delivery.id} reassigned from courier {previous_courier_id} to {result.courier_id}"
        )
        return result.courier

    def assign_all_pending_deliveries(self, now=None):
        results = {'assigned': 0, 'failed': 0, 'details': []}

        pending = (
            Delivery.query.filter(Delivery.status == 'pending', Delivery.courier_id.is_(None))
            .order_by(Delivery.id)
            .all()
        )
        for delivery in pending:
            try:
                assigned = self.assign_courier(delivery.order, now=now)
            except Exception as e:
                db.session.rollback()
                current_app.logger.error(f"❌ Auto-assignment failed for delivery {delivery.id}: {e}", exc_info=True)
                results['failed'] += 1
                results['details'].append({'delivery_id': delivery.id, 'status': 'error', 'error': str(e)})
                continue

            if assigned is not None and assigned.courier_id is not None:
                results['assigned'] += 1
                results['details'].append({
                    'delivery_id': delivery.id,
                    'courier_id': assigned.courier_id,
                    'status': 'assigned',
                })
            else:
                results['failed'] += 1
                results['details'].append({'delivery_id': delivery.id, 'status': 'no_courier_available'})

        current_app.logger.info(
            f"Pending deliveries: {results['assigned']} assigned, {results['failed']} without courier"
        )
        return results

    @staticmethod
    def estimate_delivery_time(lat1, lon1, lat2, lon2, vehicle_type='motorcycle'):
        """Travel minutes at the vehicle's average speed, rounded up, plus a handling buffer."""
        distance = distance_km(lat1, lon1, lat2, lon2)
        speed = VEHICLE_SPEEDS_KMH.get(vehicle_type, DEFAULT_SPEED_KMH)
        return int(math.ceil(distance / speed * 60)) + HANDLING_BUFFER_MINUTES

    # Internals

    def _select_and_assign(self, order, origin_lat, origin_lon, exclude_ids=(), now=None):
        now = now or datetime.utcnow()
        radius = self.settings.get_float('search_radius_km')
        candidates = self.pool.available_couriers_within_radius(
            origin_lat, origin_lon, radius, exclude_ids=exclude_ids, now=now
        )
        if not candidates:
            current_app.logger.warning(f"No available courier within {radius} km for order {order.reference}")
            return None

        for score, candidate in self.rank(candidates, radius, now):
            delivery = self._claim(order, candidate.courier, now)
            if delivery is not None:
                current_app.logger.info(
                    f"🛵 Order {order.reference} assigned to courier {candidate.courier.id} "
                    f"(score {score}, {candidate.distance_km:.2f} km)"
                )
                return delivery
            current_app.logger.info(f"Courier {candidate.courier.id} was claimed meanwhile, trying next")

        return None

    def _claim(self, order, courier, now):
        """
        Lock the courier, and if still available bind it to the order's delivery.
        One transaction for delivery, courier and order. None if the courier was taken.
        """
        try:
            courier = (
                Courier.query.filter_by(id=courier.id)
                .with_for_update()
                .populate_existing()
                .one()
            )
            if not courier.is_available:
                db.session.rollback()
                return None

            pharmacy = order.pharmacy
            delivery = order.delivery
            if delivery is None:
                delivery = Delivery(order_id=order.id)
                db.session.add(delivery)
                order.delivery = delivery
            previous_status = delivery.status or 'pending'

            delivery.courier_id = courier.id
            delivery.status = 'assigned'
            delivery.assigned_at = now
            if pharmacy is not None:
                delivery.pickup_latitude = pharmacy.latitude
                delivery.pickup_longitude = pharmacy.longitude
            delivery.dropoff_latitude = order.delivery_latitude
            delivery.dropoff_longitude = order.delivery_longitude

            courier.status = 'busy'
            order.status = 'assigned'
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"❌ Failed to assign courier {courier.id} to order {order.id}: {e}")
            raise

        self._publish(delivery, previous_status)
        self.notifier.notify(courier.user, 'delivery_assigned', {
            'order_reference': order.reference,
            'delivery_id': delivery.id,
            'pickup': pharmacy.name if pharmacy else None,
        })
        return delivery

    def _release(self, courier_id):
        courier = (
            Courier.query.filter_by(id=courier_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if courier is not None and courier.status == 'busy':
            courier.status = 'available'
        return courier

    def _publish(self, delivery, previous_status):
        self.bus.publish(DeliveryStatusChanged(
            delivery_id=delivery.id,
            order_id=delivery.order_id,
            previous_status=previous_status,
            status=delivery.status,
            courier_id=delivery.courier_id,
        ))
