# services/commission_service.py

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from db.extensions import db
from models.actor import PlatformActor, PharmacyActor, CourierActor
from models.commission import Commission, CommissionLine
from models.order import Order
from services.settings_service import SettingsStore
from services.utils import parse_rate, round_amount
from services.wallet_service import WalletService

RATE_KEYS = ('commission_rate_platform', 'commission_rate_pharmacy', 'commission_rate_courier')

LINE_DESCRIPTIONS = {
    'platform': "Platform commission - Order {reference}",
    'pharmacy': "Sale - Order {reference}",
    'courier': "Delivery - Order {reference}",
}


class CommissionService:
    """
    Three-way split of an order's total between platform, pharmacy and courier.

    The split is computed on ``order.total_amount`` with the global rates
    (0.10/0.85/0.05 by default). A pharmacy's own ``commission_rate_pharmacy`` wins
    over the global pharmacy rate. Without a courier the courier share goes
    to the pharmacy and no courier line is written.

    ``calculate_and_distribute`` is idempotent: one commission per order,
    enforced by a row lock on the order and the unique ``order_id``.
    """

    def __init__(self, settings=None, wallets=WalletService):
        self.settings = settings or SettingsStore()
        self.wallets = wallets

    def resolve_rates(self, order):
        snapshot = self.settings.snapshot(RATE_KEYS)
        platform_rate = parse_rate(snapshot['commission_rate_platform'])
        pharmacy_rate = parse_rate(snapshot['commission_rate_pharmacy'])
        courier_rate = parse_rate(snapshot['commission_rate_courier'])

        pharmacy = order.pharmacy
        if pharmacy is not None and pharmacy.commission_rate_pharmacy is not None:
            pharmacy_rate = parse_rate(pharmacy.commission_rate_pharmacy)

        return platform_rate, pharmacy_rate, courier_rate

    def build_lines(self, order, rates):
        """Return [(actor, rate, amount)] for the order."""
        platform_rate, pharmacy_rate, courier_rate = rates
        delivery = order.delivery
        courier_id = delivery.courier_id if delivery is not None else None

        if courier_id is None:
            pharmacy_rate += courier_rate
            courier_rate = Decimal(0)

        total = Decimal(order.total_amount or 0)
        lines = [
            (PlatformActor(), platform_rate),
            (PharmacyActor(order.pharmacy_id), pharmacy_rate),
        ]
        if courier_id is not None:
            lines.append((CourierActor(courier_id), courier_rate))

        return [(actor, rate, round_amount(total * rate)) for actor, rate in lines]

    def calculate_and_distribute(self, order):
        existing = Commission.query.filter_by(order_id=order.id).first()
        if existing:
            current_app.logger.info(f"Commission already calculated for order {order.reference}")
            return existing

        order_id = order.id
        # One read of the rates for the whole calculation
        rates = self.resolve_rates(order)

        try:
            order = (
                Order.query.filter_by(id=order_id)
                .with_for_update()
                .populate_existing()
                .one()
            )
            existing = Commission.query.filter_by(order_id=order_id).first()
            if existing:
                db.session.commit()
                return existing

            commission = Commission(
                order_id=order.id,
                total_amount=order.total_amount,
                calculated_at=datetime.utcnow(),
            )
            db.session.add(commission)
            db.session.flush()

            for actor, rate, amount in self.build_lines(order, rates):
                db.session.add(CommissionLine(
                    commission_id=commission.id,
                    actor_type=actor.kind,
                    actor_id=actor.id,
                    rate=rate,
                    amount=amount,
                ))
                wallet = self.wallets.wallet_for(actor)
                self.wallets.credit(
                    wallet,
                    amount,
                    commission.reference,
                    LINE_DESCRIPTIONS[actor.kind].format(reference=order.reference),
                    {'commission_id': commission.id, 'order_id': order.id},
                )

            db.session.commit()

        except IntegrityError:
            # Another trigger created the commission first
            db.session.rollback()
            existing = Commission.query.filter_by(order_id=order_id).first()
            if existing:
                current_app.logger.info(f"Commission for order {order_id} created concurrently, reusing it")
                return existing
            current_app.logger.error(f"❌ Commission for order {order_id} failed on a constraint", exc_info=True)
            raise
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"❌ Failed to distribute commissions for order {order_id}: {e}")
            raise

        current_app.logger.info(
            f"💰 Commissions distributed for order {order.reference}: "
            + ", ".join(f"{line.actor_type}={line.amount}" for line in commission.lines)
        )
        return commission

    def handle_payment_confirmed(self, event):
        """
        Safety net behind the delivered transition. Orders not yet delivered are
        left alone: delivery completion settles them with the final courier.
        """
        order = db.session.get(Order, event.order_id)
        if order is None:
            current_app.logger.warning(f"PaymentConfirmed for unknown order {event.order_id}")
            return None
        if order.status != 'delivered':
            current_app.logger.info(
                f"Payment {event.reference} confirmed, order {order.reference} not delivered yet"
            )
            return None
        return self.calculate_and_distribute(order)
