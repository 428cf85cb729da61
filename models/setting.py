from datetime import datetime
from db.extensions import db

SETTING_TYPES = ('string', 'integer', 'float', 'boolean', 'json')


class Setting(db.Model):
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=True)
    type = db.Column(db.Enum(*SETTING_TYPES, name='setting_type_enum'), default='string', nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Setting {self.key}={self.value} ({self.type})>"
