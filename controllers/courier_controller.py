from flask import Blueprint, request, jsonify
from db.extensions import db
from models.courier import Courier, VEHICLE_TYPES
from services.assignment_service import CourierAssignmentService
from services.courier_pool import CourierPool
from services.geo import valid_coordinates

courier_bp = Blueprint('courier', __name__)


@courier_bp.route('/couriers/<int:courier_id>/location', methods=['POST'])
def update_location(courier_id):
    courier = db.session.get(Courier, courier_id)
    if not courier:
        return jsonify({'error': 'Courier not found'}), 404

    data = request.get_json(silent=True) or {}
    latitude, longitude = data.get('latitude'), data.get('longitude')
    if not valid_coordinates(latitude, longitude):
        return jsonify({'error': 'Invalid coordinates'}), 400

    courier.update_location(float(latitude), float(longitude))
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return jsonify({
        'courier_id': courier.id,
        'latitude': courier.latitude,
        'longitude': courier.longitude,
        'last_location_update': courier.last_location_update.isoformat(),
    }), 200


@courier_bp.route('/couriers/stats', methods=['GET'])
def courier_stats():
    return jsonify(CourierPool().availability_stats()), 200


@courier_bp.route('/deliveries/estimate', methods=['GET'])
def estimate_delivery_time():
    args = request.args
    try:
        coordinates = [float(args[key]) for key in ('from_lat', 'from_lng', 'to_lat', 'to_lng')]
    except (KeyError, ValueError):
        return jsonify({'error': 'from_lat, from_lng, to_lat and to_lng are required'}), 400
    if not (valid_coordinates(*coordinates[:2]) and valid_coordinates(*coordinates[2:])):
        return jsonify({'error': 'Invalid coordinates'}), 400

    vehicle_type = args.get('vehicle_type', 'motorcycle')
    if vehicle_type not in VEHICLE_TYPES:
        return jsonify({'error': f"vehicle_type must be one of {', '.join(VEHICLE_TYPES)}"}), 400

    minutes = CourierAssignmentService.estimate_delivery_time(*coordinates, vehicle_type=vehicle_type)
    return jsonify({'estimated_minutes': minutes, 'vehicle_type': vehicle_type}), 200
