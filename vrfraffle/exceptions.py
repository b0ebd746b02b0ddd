"""Errors raised by raffle operations.

Every error leaves the raffle exactly as it was before the failing call,
with one documented exception: :class:`TransferFailed` is raised after the
randomness request has already been consumed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .draw.upkeep import UpkeepStatus


class RaffleError(Exception):
    """Base class for raffle failures."""


class InsufficientPayment(RaffleError):
    def __init__(self, paid: int, required: int) -> None:
        self.paid = paid
        self.required = required
        super().__init__(f"Paid {paid} wei, entrance fee is {required} wei")


class RaffleNotOpen(RaffleError):
    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"Raffle is not accepting entries (state={state})")


class UpkeepNotNeeded(RaffleError):
    """Raised by ``perform_upkeep`` when the upkeep check fails.

    Attributes
    ----------
    status : UpkeepStatus
        The individual conditions evaluated by the check.
    pool : int
        Pool balance at the time of the call.
    participant_count : int
        Number of entries at the time of the call.
    state : str
        Raffle state at the time of the call.
    """

    def __init__(
        self,
        status: "UpkeepStatus",
        *,
        pool: int,
        participant_count: int,
        state: str,
    ) -> None:
        self.status = status
        self.pool = pool
        self.participant_count = participant_count
        self.state = state
        failed = ", ".join(status.failed_conditions()) or "none"
        super().__init__(
            f"Upkeep not needed (failed: {failed}; pool={pool}, "
            f"players={participant_count}, state={state})"
        )


class NonexistentRequest(RaffleError):
    def __init__(self, request_id: int) -> None:
        self.request_id = request_id
        super().__init__(f"nonexistent request: {request_id}")


class OnlyCoordinatorCanFulfill(RaffleError):
    def __init__(self, have: str, want: str) -> None:
        self.have = have
        self.want = want
        super().__init__(f"Only coordinator {want} can fulfill, called by {have}")


class TransferFailed(RaffleError):
    def __init__(self, recipient: str, amount: int, reason: Optional[str] = None) -> None:
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        message = f"Transfer of {amount} wei to {recipient} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class RaffleInvariantError(RuntimeError):
    """An internal invariant was broken; the raffle state cannot be trusted."""


__all__ = [
    "RaffleError",
    "InsufficientPayment",
    "RaffleNotOpen",
    "UpkeepNotNeeded",
    "NonexistentRequest",
    "OnlyCoordinatorCanFulfill",
    "TransferFailed",
    "RaffleInvariantError",
]
