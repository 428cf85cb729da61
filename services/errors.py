# services/errors.py


class DispatchError(Exception):
    """Base class for courier dispatch and settlement errors."""


class MissingCoordinatesError(DispatchError):
    """Pharmacy or delivery has no usable latitude/longitude."""

    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} has no GPS coordinates")


class InvalidTransitionError(DispatchError):
    def __init__(self, delivery_id, current, requested, detail=None):
        self.delivery_id = delivery_id
        self.current = current
        self.requested = requested
        message = f"Delivery {delivery_id}: cannot go from '{current}' to '{requested}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InsufficientBalanceError(DispatchError):
    def __init__(self, wallet_id, balance, amount):
        self.wallet_id = wallet_id
        self.balance = balance
        self.amount = amount
        super().__init__(f"Wallet {wallet_id} balance {balance} is below {amount}")


class PaymentStatusError(DispatchError):
    """The payment provider could not report a status."""
