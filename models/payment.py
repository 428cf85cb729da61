from datetime import datetime, timedelta
from db.extensions import db

PAYMENT_STATUSES = ('pending', 'success', 'failed', 'expired')


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    reference = db.Column(db.String(100), unique=True, nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    status = db.Column(db.Enum(*PAYMENT_STATUSES, name='payment_status_enum'), default='pending', nullable=False)
    initiated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    raw_response = db.Column(db.JSON, nullable=True)

    order = db.relationship('Order', back_populates='payments')

    @classmethod
    def expired_pending(cls, minutes=5, now=None):
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=minutes)
        return cls.query.filter(cls.status == 'pending', cls.initiated_at <= cutoff)

    def mark_success(self, raw=None, at=None):
        self.status = 'success'
        self.completed_at = at or datetime.utcnow()
        self.raw_response = raw

    def mark_failed(self, error_message=None, raw=None, at=None):
        self.status = 'failed'
        self.completed_at = at or datetime.utcnow()
        self.error_message = error_message
        self.raw_response = raw

    def mark_expired(self, at=None):
        self.status = 'expired'
        self.completed_at = at or datetime.utcnow()

    def __repr__(self):
        return f"<Payment reference={self.reference} status={self.status}>"
