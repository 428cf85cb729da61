from flask import Blueprint, request, jsonify
from db.extensions import db
from models.courier import Courier
from models.delivery import Delivery
from services.delivery_state_machine import DeliveryStateMachine
from services.waiting_fee_service import WaitingFeeService
from controllers.order_controller import serialize_delivery

delivery_bp = Blueprint('delivery', __name__)


def _load(delivery_id):
    return db.session.get(Delivery, delivery_id)


def _courier_from_body():
    data = request.get_json(silent=True) or {}
    courier_id = data.get('courier_id')
    return db.session.get(Courier, courier_id) if courier_id else None


@delivery_bp.route('/deliveries/<int:delivery_id>', methods=['GET'])
def get_delivery(delivery_id):
    delivery = _load(delivery_id)
    if not delivery:
        return jsonify({'error': 'Delivery not found'}), 404
    return jsonify(serialize_delivery(delivery)), 200


@delivery_bp.route('/deliveries/<int:delivery_id>/accept', methods=['POST'])
def accept_delivery(delivery_id):
    delivery = _load(delivery_id)
    courier = _courier_from_body()
    if not delivery or not courier:
        return jsonify({'error': 'Delivery or courier not found'}), 404
    DeliveryStateMachine().accept(delivery, courier)
    return jsonify(serialize_delivery(delivery)), 200


@delivery_bp.route('/deliveries/<int:delivery_id>/reject', methods=['POST'])
def reject_delivery(delivery_id):
    delivery = _load(delivery_id)
    courier = _courier_from_body()
    if not delivery or not courier:
        return jsonify({'error': 'Delivery or courier not found'}), 404
    reason = (request.get_json(silent=True) or {}).get('reason')
    new_courier = DeliveryStateMachine().reject(delivery, courier, reason=reason)
    return jsonify({
        **serialize_delivery(delivery),
        'reassigned': new_courier is not None,
    }), 200


@delivery_bp.route('/deliveries/<int:delivery_id>/pickup', methods=['POST'])
def pick_up_delivery(delivery_id):
    delivery = _load(delivery_id)
    if not delivery:
        return jsonify({'error': 'Delivery not found'}), 404
    DeliveryStateMachine().pick_up(delivery)
    return jsonify(serialize_delivery(delivery)), 200


@delivery_bp.route('/deliveries/<int:delivery_id>/in-transit', methods=['POST'])
def start_transit(delivery_id):
    delivery = _load(delivery_id)
    if not delivery:
        return jsonify({'error': 'Delivery not found'}), 404
    DeliveryStateMachine().start_transit(delivery)
    return jsonify(serialize_delivery(delivery)), 200


@delivery_bp.route('/deliveries/<int:delivery_id>/arrived', methods=['POST'])
def courier_arrived(delivery_id):
    delivery = _load(delivery_id)
    if not delivery:
        return jsonify({'error': 'Delivery not found'}), 404
    DeliveryStateMachine().mark_arrived(delivery)
    return jsonify(WaitingFeeService().waiting_info(delivery)), 200


@delivery_bp.route('/deliveries/<int:delivery_id>/deliver', methods=['POST'])
def deliver(delivery_id):
    delivery = _load(delivery_id)
    if not delivery:
        return jsonify({'error': 'Delivery not found'}), 404
    DeliveryStateMachine().deliver(delivery)
    return jsonify(serialize_delivery(delivery)), 200


@delivery_bp.route('/deliveries/<int:delivery_id>/cancel', methods=['POST'])
def cancel_delivery(delivery_id):
    delivery = _load(delivery_id)
    if not delivery:
        return jsonify({'error': 'Delivery not found'}), 404
    data = request.get_json(silent=True) or {}
    DeliveryStateMachine().cancel(delivery, reason=data.get('reason'), cancelled_by=data.get('cancelled_by'))
    return jsonify(serialize_delivery(delivery)), 200


@delivery_bp.route('/deliveries/<int:delivery_id>/waiting', methods=['GET'])
def waiting_info(delivery_id):
    delivery = _load(delivery_id)
    if not delivery:
        return jsonify({'error': 'Delivery not found'}), 404
    return jsonify(WaitingFeeService().waiting_info(delivery)), 200
