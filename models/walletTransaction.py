from datetime import datetime
from db.extensions import db


class WalletTransaction(db.Model):
    __tablename__ = 'wallet_transactions'

    id = db.Column(db.Integer, primary_key=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey('wallets.id'), nullable=False)
    type = db.Column(db.Enum('credit', 'debit', name='wallet_transaction_type_enum'), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(255))
    # "metadata" is reserved on declarative models
    meta = db.Column('metadata', db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    wallet = db.relationship('Wallet', back_populates='transactions')

    __table_args__ = (
        db.UniqueConstraint('wallet_id', 'reference', name='uq_wallet_transaction_reference'),
    )

    def __repr__(self):
        return f"<WalletTransaction {self.type} amount={self.amount} reference={self.reference}>"
