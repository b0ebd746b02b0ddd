from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .raffle import Raffle, RaffleState  # noqa: F401
from .entry import RaffleEntry  # noqa: F401
from .request import RandomnessRequest  # noqa: F401
from .draw import RaffleDraw  # noqa: F401
from .event import (  # noqa: F401
    RAFFLE_ENTER,
    REQUESTED_RAFFLE_WINNER,
    WINNER_PICKED,
    RaffleEvent,
)

__all__ = [
    "Base",
    "Raffle",
    "RaffleState",
    "RaffleEntry",
    "RandomnessRequest",
    "RaffleDraw",
    "RaffleEvent",
    "RAFFLE_ENTER",
    "REQUESTED_RAFFLE_WINNER",
    "WINNER_PICKED",
]
