"""Raffle round lifecycle: entries, upkeep, randomness and payout."""

from .engine import RAFFLE_LOCK, RaffleEngine
from .gateway import RandomnessCoordinator, RandomnessGateway
from .ledger import EntryLedger
from .payout import PayoutEngine, PayoutProvider, Settlement
from .selection import select_winner_index
from .upkeep import UpkeepStatus, evaluate_upkeep

__all__ = [
    "RAFFLE_LOCK",
    "RaffleEngine",
    "RandomnessCoordinator",
    "RandomnessGateway",
    "EntryLedger",
    "PayoutEngine",
    "PayoutProvider",
    "Settlement",
    "select_winner_index",
    "UpkeepStatus",
    "evaluate_upkeep",
]
