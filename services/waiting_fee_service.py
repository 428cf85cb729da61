# services/waiting_fee_service.py

from datetime import datetime

from services.settings_service import SettingsStore
from services.utils import minutes_between


class WaitingFeeService:
    """
    Waiting timer bookkeeping. Fee = billable minutes x fee per minute, where
    billable minutes are whole minutes waited beyond the free allowance.
    None of these methods commit.
    """

    def __init__(self, settings=None):
        self.settings_store = settings or SettingsStore()

    def settings(self):
        return {
            'timeout_minutes': self.settings_store.get_int('waiting_timeout_minutes'),
            'fee_per_minute': self.settings_store.get_int('waiting_fee_per_minute'),
            'free_minutes': self.settings_store.get_int('waiting_free_minutes'),
        }

    @staticmethod
    def fee_for(waiting_minutes, fee_per_minute, free_minutes):
        billable_minutes = max(0, waiting_minutes - free_minutes)
        return billable_minutes * fee_per_minute

    def waiting_minutes(self, delivery, now=None):
        if not delivery.waiting_started_at:
            return 0
        end = delivery.waiting_ended_at or now or datetime.utcnow()
        return minutes_between(delivery.waiting_started_at, end)

    def calculate_current_fee(self, delivery, now=None, settings=None):
        if not delivery.waiting_started_at:
            return 0
        settings = settings or self.settings()
        return self.fee_for(
            self.waiting_minutes(delivery, now),
            settings['fee_per_minute'],
            settings['free_minutes'],
        )

    def start_waiting(self, delivery, now=None):
        """Idempotent: an already running timer is left untouched."""
        if delivery.waiting_started_at:
            return False
        delivery.waiting_started_at = now or datetime.utcnow()
        return True

    def stop_waiting(self, delivery, now=None, settings=None):
        if not delivery.waiting_started_at or delivery.waiting_ended_at:
            return delivery
        now = now or datetime.utcnow()
        fee = self.calculate_current_fee(delivery, now, settings)
        delivery.waiting_ended_at = now
        delivery.waiting_fee = max(delivery.waiting_fee or 0, fee)
        return delivery

    def refresh_fee(self, delivery, now=None, settings=None):
        """Live fee while the timer runs. Never lowers the recorded fee."""
        if not delivery.is_waiting:
            return False
        fee = self.calculate_current_fee(delivery, now, settings)
        if fee > (delivery.waiting_fee or 0):
            delivery.waiting_fee = fee
            return True
        return False

    def remaining_minutes(self, delivery, now=None, settings=None):
        if not delivery.is_waiting:
            return None
        settings = settings or self.settings()
        return max(0, settings['timeout_minutes'] - self.waiting_minutes(delivery, now))

    def has_timed_out(self, delivery, now=None, settings=None):
        if not delivery.is_waiting:
            return False
        settings = settings or self.settings()
        return self.waiting_minutes(delivery, now) >= settings['timeout_minutes']

    def waiting_info(self, delivery, now=None):
        settings = self.settings()
        info = {
            'is_waiting': delivery.is_waiting,
            'waiting_started_at': delivery.waiting_started_at.isoformat() if delivery.waiting_started_at else None,
            'waiting_ended_at': delivery.waiting_ended_at.isoformat() if delivery.waiting_ended_at else None,
            'waiting_minutes': self.waiting_minutes(delivery, now),
            'waiting_fee': max(delivery.waiting_fee or 0, self.calculate_current_fee(delivery, now, settings)),
            'remaining_minutes': self.remaining_minutes(delivery, now, settings),
            'timed_out': self.has_timed_out(delivery, now, settings),
            'free_minutes': settings['free_minutes'],
            'fee_per_minute': settings['fee_per_minute'],
            'timeout_minutes': settings['timeout_minutes'],
            'auto_cancelled': delivery.auto_cancelled_at is not None,
            'cancellation_reason': delivery.cancellation_reason,
        }
        return info
