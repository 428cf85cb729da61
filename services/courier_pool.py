# services/courier_pool.py

from dataclasses import dataclass
from datetime import datetime, timedelta

from models.courier import Courier
from services.geo import distance_km
from services.settings_service import SettingsStore


@dataclass
class CourierCandidate:
    courier: Courier
    distance_km: float


class CourierPool:

    def __init__(self, settings=None):
        self.settings = settings or SettingsStore()

    def available_couriers_within_radius(self, origin_lat, origin_lon, radius_km, exclude_ids=(), now=None):
        """
        Available couriers with a fresh position inside ``radius_km``, annotated
        with their distance to the origin. Unsorted; empty when nobody qualifies.
        """
        now = now or datetime.utcnow()
        freshness = self.settings.get_int('courier_location_freshness_minutes')
        cutoff = now - timedelta(minutes=freshness)

        query = Courier.query.filter(
            Courier.status == 'available',
            Courier.latitude.isnot(None),
            Courier.longitude.isnot(None),
            Courier.last_location_update.isnot(None),
            Courier.last_location_update >= cutoff,
        )
        exclude_ids = [courier_id for courier_id in exclude_ids if courier_id is not None]
        if exclude_ids:
            query = query.filter(Courier.id.notin_(exclude_ids))

        candidates = []
        for courier in query.all():
            distance = distance_km(origin_lat, origin_lon, courier.latitude, courier.longitude)
            if distance <= radius_km:
                candidates.append(CourierCandidate(courier=courier, distance_km=distance))
        return candidates

    def availability_stats(self, now=None):
        now = now or datetime.utcnow()
        freshness = self.settings.get_int('courier_location_freshness_minutes')
        available = Courier.query.filter_by(status='available').count()
        busy = Courier.query.filter_by(status='busy').count()
        offline = Courier.query.filter_by(status='offline').count()
        recently_active = Courier.query.filter(
            Courier.status == 'available',
            Courier.last_location_update >= now - timedelta(minutes=freshness),
        ).count()

        return {
            'available': available,
            'busy': busy,
            'offline': offline,
            'recently_active': recently_active,
            'total': available + busy + offline,
        }
