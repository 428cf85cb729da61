# jobs/pending_payments.py
"""Re-checks payments stuck in pending, run every two minutes by the scheduler."""

from datetime import datetime

from flask import current_app

from db.extensions import db
from models.payment import Payment
from services.events import PaymentConfirmed, get_event_bus
from services.payment_gateway import JekoPaymentGateway


def _confirm(bus, payment):
    # The payment is already committed; settlement is retried by the settlement sweep
    try:
        bus.publish(PaymentConfirmed(
            payment_id=payment.id,
            order_id=payment.order_id,
            reference=payment.reference,
        ))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"❌ Settlement after payment {payment.reference} failed: {e}", exc_info=True)


def check_pending_payments(provider=None, timeout_minutes=None, now=None, bus=None):
    now = now or datetime.utcnow()
    provider = provider or JekoPaymentGateway.from_config()
    bus = bus or get_event_bus()
    if timeout_minutes is None:
        timeout_minutes = current_app.config.get('PENDING_PAYMENT_TIMEOUT_MINUTES', 5)

    current_app.logger.info(f"Checking pending payments older than {timeout_minutes} min")
    payments = Payment.expired_pending(timeout_minutes, now).order_by(Payment.id).all()

    stats = {
        'total_checked': len(payments),
        'success': 0,
        'failed': 0,
        'expired': 0,
        'errors': 0,
    }

    for payment in payments:
        reference = payment.reference
        try:
            result = provider.check_status(reference)
            status = result.get('status')
            raw = result.get('raw')

            if status == 'success':
                payment.mark_success(raw=raw, at=now)
                db.session.commit()
                stats['success'] += 1
                current_app.logger.info(f"Pending payment {reference} resolved: success")
                _confirm(bus, payment)
            elif status == 'failed':
                payment.mark_failed(error_message=(raw or {}).get('message'), raw=raw, at=now)
                db.session.commit()
                stats['failed'] += 1
                current_app.logger.info(f"Pending payment {reference} resolved: failed")
            else:
                payment.mark_expired(at=now)
                db.session.commit()
                stats['expired'] += 1
                current_app.logger.info(f"Payment {reference} marked as expired (initiated {payment.initiated_at})")

        except Exception as e:
            db.session.rollback()
            stats['errors'] += 1
            current_app.logger.error(f"❌ Error checking pending payment {reference}: {e}")

    current_app.logger.info(f"Pending payments check complete: {stats}")
    return stats
