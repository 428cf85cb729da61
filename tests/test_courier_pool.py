from services.courier_pool import CourierPool

from tests.conftest import NOW, PHARMACY_LAT, PHARMACY_LON


def test_only_available_fresh_couriers_within_radius(make, settings):
    near = make.courier(latitude=PHARMACY_LAT + 0.01)
    make.courier(status='busy')
    make.courier(status='offline')
    make.courier(seen_minutes_ago=45)  # stale position
    make.courier(latitude=None)  # never reported a position
    make.courier(latitude=PHARMACY_LAT + 1.0)  # about 111 km away

    candidates = CourierPool(settings).available_couriers_within_radius(
        PHARMACY_LAT, PHARMACY_LON, 20, now=NOW
    )

    assert [candidate.courier.id for candidate in candidates] == [near.id]
    assert 1.0 < candidates[0].distance_km < 1.2


def test_excluded_couriers_are_skipped(make, settings):
    first = make.courier()
    second = make.courier()

    candidates = CourierPool(settings).available_couriers_within_radius(
        PHARMACY_LAT, PHARMACY_LON, 20, exclude_ids=[first.id, None], now=NOW
    )

    assert [candidate.courier.id for candidate in candidates] == [second.id]


def test_freshness_window_is_a_setting(make, settings):
    courier = make.courier(seen_minutes_ago=45)
    settings.set('courier_location_freshness_minutes', 60, 'integer')

    candidates = CourierPool(settings).available_couriers_within_radius(
        PHARMACY_LAT, PHARMACY_LON, 20, now=NOW
    )

    assert [candidate.courier.id for candidate in candidates] == [courier.id]


def test_empty_pool(app, settings):
    assert CourierPool(settings).available_couriers_within_radius(PHARMACY_LAT, PHARMACY_LON, 20, now=NOW) == []


def test_availability_stats(make, settings):
    make.courier()
    make.courier(seen_minutes_ago=90)
    make.courier(status='busy')
    make.courier(status='offline')

    stats = CourierPool(settings).availability_stats(now=NOW)

    assert stats == {'available': 2, 'busy': 1, 'offline': 1, 'recently_active': 1, 'total': 4}
