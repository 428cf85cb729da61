# services/wallet_service.py

import logging
from datetime import datetime

from db.extensions import db
from models.actor import PlatformActor
from models.wallet import Wallet
from models.walletTransaction import WalletTransaction
from services.errors import InsufficientBalanceError

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = 'XOF'


class WalletService:
    """
    Balance changes go through credit/debit only. Neither commits: the caller
    owns the transaction, so a ledger line and the change it records land together.
    """

    @staticmethod
    def wallet_for(actor, currency=DEFAULT_CURRENCY):
        wallet = Wallet.for_owner(actor).first()
        if wallet:
            return wallet

        owner_type, owner_id = Wallet.owner_key(actor)
        wallet = Wallet(owner_type=owner_type, owner_id=owner_id, balance=0, currency=currency)
        db.session.add(wallet)
        db.session.flush()
        logger.info(f"Created {actor.kind} wallet {wallet.id} (owner {actor.id})")
        return wallet

    @staticmethod
    def platform_wallet():
        return WalletService.wallet_for(PlatformActor())

    @staticmethod
    def _lock(wallet):
        # Serialise concurrent writers on the same wallet row
        return (
            Wallet.query.filter_by(id=wallet.id)
            .with_for_update()
            .populate_existing()
            .one()
        )

    @staticmethod
    def credit(wallet, amount, reference, description, metadata=None):
        if amount < 0:
            raise ValueError("Credit amount must not be negative")

        wallet = WalletService._lock(wallet)
        wallet.balance += amount
        transaction = WalletTransaction(
            wallet_id=wallet.id,
            type='credit',
            amount=amount,
            balance_after=wallet.balance,
            reference=reference,
            description=description,
            meta=metadata,
            created_at=datetime.utcnow(),
        )
        db.session.add(transaction)
        db.session.flush()
        return transaction

    @staticmethod
    def debit(wallet, amount, reference, description, metadata=None):
        if amount < 0:
            raise ValueError("Debit amount must not be negative")

        wallet = WalletService._lock(wallet)
        if not wallet.has_sufficient_balance(amount):
            raise InsufficientBalanceError(wallet.id, wallet.balance, amount)

        wallet.balance -= amount
        transaction = WalletTransaction(
            wallet_id=wallet.id,
            type='debit',
            amount=amount,
            balance_after=wallet.balance,
            reference=reference,
            description=description,
            meta=metadata,
            created_at=datetime.utcnow(),
        )
        db.session.add(transaction)
        db.session.flush()
        return transaction

    @staticmethod
    def balance(actor):
        wallet = Wallet.for_owner(actor).first()
        return wallet.balance if wallet else 0

    @staticmethod
    def transaction_history(actor, limit=50):
        wallet = Wallet.for_owner(actor).first()
        if not wallet:
            return []
        return (
            WalletTransaction.query.filter_by(wallet_id=wallet.id)
            .order_by(WalletTransaction.id.desc())
            .limit(limit)
            .all()
        )
