from datetime import datetime
from db.extensions import db


class Pharmacy(db.Model):
    __tablename__ = 'pharmacies'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255))
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    # Fraction (0.90) replacing the global pharmacy share when set
    commission_rate_pharmacy = db.Column(db.Numeric(6, 4), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', back_populates='pharmacy')
    orders = db.relationship('Order', back_populates='pharmacy')

    def __repr__(self):
        return f"<Pharmacy id={self.id} name={self.name}>"
