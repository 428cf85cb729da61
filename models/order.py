from datetime import datetime
from db.extensions import db

ORDER_STATUSES = (
    'pending', 'confirmed', 'paid', 'preparing', 'ready',
    'assigned', 'in_delivery', 'delivered', 'cancelled'
)
PAYMENT_MODES = ('cash', 'mobile_money', 'card', 'platform')


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(50), unique=True, nullable=False)
    pharmacy_id = db.Column(db.Integer, db.ForeignKey('pharmacies.id'), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    status = db.Column(db.Enum(*ORDER_STATUSES, name='order_status_enum'), default='pending', nullable=False)
    payment_mode = db.Column(db.Enum(*PAYMENT_MODES, name='payment_mode_enum'), default='platform')
    # Whole currency units (XOF has no fractional part)
    subtotal = db.Column(db.Integer, nullable=False, default=0)
    delivery_fee = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(3), default='XOF')
    delivery_address = db.Column(db.String(255))
    delivery_latitude = db.Column(db.Float, nullable=True)
    delivery_longitude = db.Column(db.Float, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    pharmacy = db.relationship('Pharmacy', back_populates='orders')
    customer = db.relationship('User', back_populates='orders')
    delivery = db.relationship('Delivery', uselist=False, back_populates='order')
    commission = db.relationship('Commission', uselist=False, back_populates='order')
    payments = db.relationship('Payment', back_populates='order')

    def __repr__(self):
        return f"<Order reference={self.reference} status={self.status}>"
