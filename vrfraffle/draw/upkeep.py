"""Upkeep eligibility check for starting a draw."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..db.utils import ensure_utc
from ..models.raffle import RaffleState


@dataclass(frozen=True)
class UpkeepStatus:
    """Individual conditions evaluated by :func:`evaluate_upkeep`.

    Attributes
    ----------
    time_elapsed : bool
        At least one interval has passed since the last draw.
    has_funds : bool
        The pool holds a positive balance.
    has_players : bool
        At least one entry was recorded this round.
    is_open : bool
        The raffle is accepting entries (no draw outstanding).
    """

    time_elapsed: bool
    has_funds: bool
    has_players: bool
    is_open: bool

    @property
    def upkeep_needed(self) -> bool:
        return self.time_elapsed and self.has_funds and self.has_players and self.is_open

    def failed_conditions(self) -> list[str]:
        """Return the names of the conditions that did not hold."""
        return [
            name
            for name in ("time_elapsed", "has_funds", "has_players", "is_open")
            if not getattr(self, name)
        ]

    def __bool__(self) -> bool:
        return self.upkeep_needed


def evaluate_upkeep(
    *,
    state: RaffleState,
    last_draw_at: datetime,
    interval_seconds: int,
    pool: int,
    participant_count: int,
    now: datetime,
) -> UpkeepStatus:
    """Decide whether a draw may start at ``now``.

    The function only reads its arguments, so polling agents can call it as
    often as they like.
    """
    elapsed = (ensure_utc(now) - ensure_utc(last_draw_at)).total_seconds()
    return UpkeepStatus(
        time_elapsed=elapsed >= interval_seconds,
        has_funds=pool > 0,
        has_players=participant_count > 0,
        is_open=state is RaffleState.OPEN,
    )


__all__ = ["UpkeepStatus", "evaluate_upkeep"]
