# models/delivery.py
from datetime import datetime
from db.extensions import db

DELIVERY_STATUSES = (
    'pending', 'assigned', 'accepted', 'picked_up', 'in_transit', 'delivered', 'cancelled'
)
TERMINAL_DELIVERY_STATUSES = ('delivered', 'cancelled')


class Delivery(db.Model):
    __tablename__ = 'deliveries'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), unique=True, nullable=False)
    courier_id = db.Column(db.Integer, db.ForeignKey('couriers.id'), nullable=True)
    status = db.Column(db.Enum(*DELIVERY_STATUSES, name='delivery_status_enum'), default='pending', nullable=False)

    pickup_latitude = db.Column(db.Float, nullable=True)
    pickup_longitude = db.Column(db.Float, nullable=True)
    dropoff_latitude = db.Column(db.Float, nullable=True)
    dropoff_longitude = db.Column(db.Float, nullable=True)

    assigned_at = db.Column(db.DateTime, nullable=True)
    accepted_at = db.Column(db.DateTime, nullable=True)
    picked_up_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    # Waiting timer: courier at the drop-off, customer not there yet
    waiting_started_at = db.Column(db.DateTime, nullable=True)
    waiting_ended_at = db.Column(db.DateTime, nullable=True)
    waiting_fee = db.Column(db.Integer, nullable=False, default=0)
    auto_cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = db.relationship('Order', back_populates='delivery')
    courier = db.relationship('Courier', back_populates='deliveries')

    __table_args__ = (
        db.Index('ix_deliveries_courier_status', 'courier_id', 'status'),
        db.Index('ix_deliveries_waiting', 'status', 'waiting_started_at'),
    )

    @property
    def is_terminal(self):
        return self.status in TERMINAL_DELIVERY_STATUSES

    @property
    def is_waiting(self):
        return (
            self.waiting_started_at is not None
            and self.waiting_ended_at is None
            and self.auto_cancelled_at is None
        )

    def __repr__(self):
        return f"<Delivery id={self.id} order_id={self.order_id} status={self.status}>"
