from __future__ import annotations

from ..exceptions import RaffleInvariantError


def select_winner_index(random_value: int, participant_count: int) -> int:
    """Map a random word onto an entry index of the closed round.

    ``participant_count`` must be the count frozen when the randomness was
    requested. A zero count cannot happen while entries are blocked during
    ``CALCULATING``, so reaching it means the raffle state is corrupt.
    """
    if participant_count <= 0:
        raise RaffleInvariantError(
            f"Cannot select a winner among {participant_count} participants"
        )
    if random_value < 0:
        raise ValueError("random_value must be a non-negative integer")
    return random_value % participant_count


__all__ = ["select_winner_index"]
