from datetime import datetime
from db.extensions import db
from models.actor import ACTOR_TYPES, actor_from_columns


class Commission(db.Model):
    __tablename__ = "commissions"

    id = db.Column(db.Integer, primary_key=True)
    # Unique: at most one commission per order
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), unique=True, nullable=False)
    total_amount = db.Column(db.Integer, nullable=False)
    calculated_at = db.Column(db.DateTime, default=datetime.utcnow)

    order = db.relationship("Order", back_populates="commission")
    lines = db.relationship("CommissionLine", back_populates="commission", order_by="CommissionLine.id")

    @property
    def reference(self):
        return f"COMMISSION-{self.id}"


class CommissionLine(db.Model):
    __tablename__ = "commission_lines"

    id = db.Column(db.Integer, primary_key=True)
    commission_id = db.Column(db.Integer, db.ForeignKey('commissions.id'), nullable=False)
    actor_type = db.Column(db.Enum(*ACTOR_TYPES, name='actor_type_enum'), nullable=False)
    actor_id = db.Column(db.Integer, nullable=True)
    rate = db.Column(db.Numeric(6, 4), nullable=False)
    amount = db.Column(db.Integer, nullable=False)

    commission = db.relationship("Commission", back_populates="lines")

    @property
    def actor(self):
        return actor_from_columns(self.actor_type, self.actor_id)

    def __repr__(self):
        return f"<CommissionLine {self.actor_type}:{self.actor_id} rate={self.rate} amount={self.amount}>"
