from datetime import datetime
from db.extensions import db
from models.actor import ACTOR_TYPES, actor_from_columns

PLATFORM_OWNER_ID = 0


class Wallet(db.Model):
    __tablename__ = 'wallets'

    id = db.Column(db.Integer, primary_key=True)
    owner_type = db.Column(db.Enum(*ACTOR_TYPES, name='wallet_owner_enum'), nullable=False)
    # PLATFORM_OWNER_ID for the platform wallet; NULLs would not collide in uq_wallet_owner
    owner_id = db.Column(db.Integer, nullable=False)
    balance = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default='XOF')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = db.relationship('WalletTransaction', back_populates='wallet', order_by='WalletTransaction.id')

    __table_args__ = (
        db.UniqueConstraint('owner_type', 'owner_id', name='uq_wallet_owner'),
    )

    @staticmethod
    def owner_key(actor):
        return actor.kind, (PLATFORM_OWNER_ID if actor.id is None else actor.id)

    @classmethod
    def for_owner(cls, actor):
        owner_type, owner_id = cls.owner_key(actor)
        return cls.query.filter_by(owner_type=owner_type, owner_id=owner_id)

    @property
    def owner(self):
        return actor_from_columns(self.owner_type, self.owner_id)

    def has_sufficient_balance(self, amount):
        return self.balance >= amount

    def __repr__(self):
        return f"<Wallet {self.owner_type}:{self.owner_id} balance={self.balance} {self.currency}>"
