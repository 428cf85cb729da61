# models/actor.py
"""Parties that take a share of an order and own a wallet."""
from dataclasses import dataclass
from typing import Optional, Union

PLATFORM = 'platform'
PHARMACY = 'pharmacy'
COURIER = 'courier'
ACTOR_TYPES = (PLATFORM, PHARMACY, COURIER)


@dataclass(frozen=True)
class PlatformActor:
    kind = PLATFORM

    @property
    def id(self) -> Optional[int]:
        return None


@dataclass(frozen=True)
class PharmacyActor:
    id: int
    kind = PHARMACY


@dataclass(frozen=True)
class CourierActor:
    id: int
    kind = COURIER


ActorRef = Union[PlatformActor, PharmacyActor, CourierActor]


def actor_from_columns(actor_type: str, actor_id: Optional[int]) -> ActorRef:
    if actor_type == PLATFORM:
        return PlatformActor()
    if actor_type == PHARMACY:
        return PharmacyActor(actor_id)
    if actor_type == COURIER:
        return CourierActor(actor_id)
    raise ValueError(f"Unknown actor type: {actor_type}")
