from datetime import datetime
from db.extensions import db


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True)
    phone = db.Column(db.String(30))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    courier = db.relationship('Courier', back_populates='user', uselist=False)
    pharmacy = db.relationship('Pharmacy', back_populates='user', uselist=False)
    orders = db.relationship('Order', back_populates='customer')

    def __repr__(self):
        return f"<User id={self.id} name={self.name}>"
