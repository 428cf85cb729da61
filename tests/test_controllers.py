from db.extensions import db
from models.commission import Commission

from tests.conftest import PHARMACY_LAT, PHARMACY_LON


def fresh_courier(make, **kwargs):
    courier = make.courier(**kwargs)
    courier.update_location(PHARMACY_LAT, PHARMACY_LON)
    db.session.commit()
    return courier


def test_auto_assign(client, make):
    order = make.order()
    courier = fresh_courier(make)

    response = client.post(f'/api/orders/{order.id}/assign')

    assert response.status_code == 200
    data = response.get_json()
    assert data['courier_id'] == courier.id
    assert data['status'] == 'assigned'


def test_auto_assign_without_courier(client, make):
    order = make.order()

    response = client.post(f'/api/orders/{order.id}/assign')

    assert response.status_code == 200
    assert response.get_json()['assigned'] is False


def test_auto_assign_without_pharmacy_coordinates(client, make):
    order = make.order(pharmacy=make.pharmacy(latitude=None, longitude=None))

    response = client.post(f'/api/orders/{order.id}/assign')

    assert response.status_code == 422
    assert response.get_json()['manual_assignment_required'] is True


def test_manual_assign_busy_courier(client, make):
    order = make.order()
    courier = make.courier(status='busy')

    response = client.post(f'/api/orders/{order.id}/assign', json={'courier_id': courier.id})

    assert response.status_code == 409


def test_unknown_order(client, app):
    assert client.post('/api/orders/999/assign').status_code == 404


def test_assign_pending(client, make):
    make.order()
    make.order()
    fresh_courier(make)

    response = client.post('/api/deliveries/assign-pending')

    assert response.status_code == 200
    assert response.get_json()['assigned'] == 1
    assert response.get_json()['failed'] == 1


def test_delivery_lifecycle(client, make):
    courier = make.courier()
    delivery = make.delivery('assigned', courier=courier, total_amount=5000)
    base = f'/api/deliveries/{delivery.id}'

    assert client.post(f'{base}/accept', json={'courier_id': courier.id}).status_code == 200
    assert client.post(f'{base}/pickup').status_code == 200
    assert client.post(f'{base}/in-transit').status_code == 200

    arrived = client.post(f'{base}/arrived')
    assert arrived.status_code == 200
    assert arrived.get_json()['is_waiting'] is True
    assert client.get(f'{base}/waiting').get_json()['free_minutes'] == 2

    delivered = client.post(f'{base}/deliver')
    assert delivered.status_code == 200
    assert delivered.get_json()['status'] == 'delivered'
    assert Commission.query.filter_by(order_id=delivery.order_id).count() == 1


def test_illegal_transition_is_a_conflict(client, make):
    delivery = make.delivery('assigned', courier=make.courier())

    response = client.post(f'/api/deliveries/{delivery.id}/deliver')

    assert response.status_code == 409
    assert response.get_json()['status'] == 'assigned'


def test_reject_reports_reassignment(client, make):
    refusing = make.courier()
    delivery = make.delivery('assigned', courier=refusing)

    response = client.post(f'/api/deliveries/{delivery.id}/reject', json={'courier_id': refusing.id})

    assert response.status_code == 200
    assert response.get_json()['reassigned'] is False
    assert response.get_json()['status'] == 'pending'


def test_cancel(client, make):
    delivery = make.delivery('accepted', courier=make.courier())

    response = client.post(
        f'/api/deliveries/{delivery.id}/cancel',
        json={'reason': 'Customer request', 'cancelled_by': 'pharmacy'},
    )

    assert response.status_code == 200
    assert response.get_json()['cancellation_reason'] == 'Customer request'


def test_update_location(client, make):
    courier = make.courier()

    response = client.post(f'/api/couriers/{courier.id}/location', json={'latitude': 5.35, 'longitude': -4.0})

    assert response.status_code == 200
    assert response.get_json()['latitude'] == 5.35
    assert client.post(
        f'/api/couriers/{courier.id}/location', json={'latitude': 95, 'longitude': 0}
    ).status_code == 400


def test_courier_stats(client, make):
    fresh_courier(make)
    make.courier(status='busy')

    data = client.get('/api/couriers/stats').get_json()

    assert data['available'] == 1
    assert data['busy'] == 1
    assert data['recently_active'] == 1


def test_estimate(client, app):
    response = client.get('/api/deliveries/estimate?from_lat=0&from_lng=0&to_lat=0.1&to_lng=0&vehicle_type=bicycle')

    assert response.status_code == 200
    assert response.get_json() == {'estimated_minutes': 55, 'vehicle_type': 'bicycle'}
    assert client.get('/api/deliveries/estimate?from_lat=0').status_code == 400
    assert client.get(
        '/api/deliveries/estimate?from_lat=0&from_lng=0&to_lat=0.1&to_lng=0&vehicle_type=rocket'
    ).status_code == 400


def test_health(client, app):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.get_json()['database'] == 'connected'
    assert response.get_json()['redis'] == 'connected'


def test_unknown_route_keeps_404(client, app):
    assert client.get('/api/nothing-here').status_code == 404
