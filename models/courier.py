# models/courier.py
from datetime import datetime
from db.extensions import db

COURIER_STATUSES = (
    'available', 'busy', 'offline', 'pending', 'approved', 'rejected', 'suspended'
)
VEHICLE_TYPES = ('motorcycle', 'bicycle', 'car', 'on_foot')


class Courier(db.Model):
    __tablename__ = 'couriers'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=True)
    name = db.Column(db.String(255))
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    status = db.Column(db.Enum(*COURIER_STATUSES, name='courier_status_enum'), default='pending', nullable=False)
    rating = db.Column(db.Float, default=5.0)
    completed_deliveries = db.Column(db.Integer, default=0, nullable=False)
    last_location_update = db.Column(db.DateTime, nullable=True)
    vehicle_type = db.Column(db.Enum(*VEHICLE_TYPES, name='vehicle_type_enum'), default='motorcycle')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', back_populates='courier')
    deliveries = db.relationship('Delivery', back_populates='courier')

    __table_args__ = (
        db.Index('ix_couriers_status_location', 'status', 'latitude', 'longitude'),
    )

    @property
    def is_available(self):
        return self.status == 'available'

    def update_location(self, latitude, longitude, at=None):
        self.latitude = latitude
        self.longitude = longitude
        self.last_location_update = at or datetime.utcnow()

    def __repr__(self):
        return f"<Courier id={self.id} status={self.status}>"
