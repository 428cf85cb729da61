from flask import Blueprint, request, jsonify, current_app
from db.extensions import db
from models.order import Order
from models.courier import Courier
from services.assignment_service import CourierAssignmentService
from services.errors import MissingCoordinatesError

order_bp = Blueprint('order', __name__)


def serialize_delivery(delivery):
    return {
        'delivery_id': delivery.id,
        'order_id': delivery.order_id,
        'courier_id': delivery.courier_id,
        'status': delivery.status,
        'is_terminal': delivery.is_terminal,
        'assigned_at': delivery.assigned_at.isoformat() if delivery.assigned_at else None,
        'waiting_fee': delivery.waiting_fee,
        'cancellation_reason': delivery.cancellation_reason,
    }


@order_bp.route('/orders/<int:order_id>/assign', methods=['POST'])
def assign_order(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    data = request.get_json(silent=True) or {}
    service = CourierAssignmentService()

    courier_id = data.get('courier_id')
    if courier_id:
        courier = db.session.get(Courier, courier_id)
        if not courier:
            return jsonify({'error': 'Courier not found'}), 404
        delivery = service.assign_specific_courier(order, courier)
        if delivery is None:
            return jsonify({'error': 'Courier is not available'}), 409
        return jsonify(serialize_delivery(delivery)), 200

    try:
        delivery = service.assign_courier(order)
    except MissingCoordinatesError as e:
        return jsonify({'error': str(e), 'manual_assignment_required': True}), 422

    if delivery is None:
        current_app.logger.warning(f"Order {order.reference} left unassigned: no courier available")
        return jsonify({'assigned': False, 'message': 'No courier available'}), 200
    return jsonify(serialize_delivery(delivery)), 200


@order_bp.route('/deliveries/assign-pending', methods=['POST'])
def assign_pending_deliveries():
    results = CourierAssignmentService().assign_all_pending_deliveries()
    return jsonify(results), 200
