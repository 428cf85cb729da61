# jobs/settlements.py
"""
Settles delivered orders that still have no commission, run every five minutes
by the scheduler (``flask dispatch settle-unsettled``).

Covers a settlement that failed after the delivery itself was committed.
Settlement is idempotent, so an order settled concurrently is simply skipped.
"""

from flask import current_app

from db.extensions import db
from models.commission import Commission
from models.order import Order
from services.commission_service import CommissionService


def unsettled_orders():
    return (
        Order.query
        .outerjoin(Commission, Commission.order_id == Order.id)
        .filter(Order.status == 'delivered', Commission.id.is_(None))
        .order_by(Order.id)
    )


def settle_unsettled_commissions(commissions=None):
    commissions = commissions or CommissionService()
    orders = unsettled_orders().all()
    current_app.logger.info(f"Settling {len(orders)} delivered order(s) without commission")

    results = {'settled': 0, 'failed': 0}
    for order in orders:
        try:
            commissions.calculate_and_distribute(order)
            results['settled'] += 1
        except Exception as e:
            db.session.rollback()
            results['failed'] += 1
            current_app.logger.error(f"❌ Settlement failed for order {order.reference}: {e}", exc_info=True)

    current_app.logger.info(f"Settlement sweep complete: {results}")
    return results
