# jobs/waiting_timeouts.py
"""
Waiting-timer sweep, run every minute by the scheduler
(``flask dispatch check-waiting-timeouts``).

The cut-off is computed from ``waiting_started_at`` against the wall clock,
so a missed run is simply caught up by the next one.
"""

from datetime import datetime, timedelta

from flask import current_app

from db.extensions import db
from models.delivery import Delivery
from services.delivery_state_machine import DeliveryStateMachine


def _waiting_deliveries():
    return Delivery.query.filter(
        Delivery.waiting_started_at.isnot(None),
        Delivery.waiting_ended_at.is_(None),
        Delivery.auto_cancelled_at.is_(None),
        Delivery.status == 'in_transit',
    )


def check_waiting_timeouts(state_machine=None, now=None):
    now = now or datetime.utcnow()
    machine = state_machine or DeliveryStateMachine()
    settings = machine.waiting.settings()
    cutoff = now - timedelta(minutes=settings['timeout_minutes'])

    expired = (
        _waiting_deliveries()
        .filter(Delivery.waiting_started_at <= cutoff)
        .order_by(Delivery.id)
        .all()
    )

    cancelled = 0
    for delivery in expired:
        try:
            machine.auto_cancel_for_timeout(delivery, settings, now)
            cancelled += 1
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"❌ Timeout cancellation failed for delivery {delivery.id}: {e}", exc_info=True)

    updated = 0
    for delivery in _waiting_deliveries().order_by(Delivery.id).all():
        if machine.waiting.refresh_fee(delivery, now, settings):
            updated += 1
    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"❌ Waiting fee refresh failed: {e}", exc_info=True)
        updated = 0

    if cancelled:
        current_app.logger.info(f"CheckWaitingDeliveryTimeouts: cancelled {cancelled} delivery(ies) on timeout")
    return {'cancelled': cancelled, 'updated': updated}
