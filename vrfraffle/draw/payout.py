"""Settlement of a drawn round: pay the pool out and open the next round."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol

from sqlalchemy.orm import Session

from ..exceptions import RaffleInvariantError, TransferFailed
from ..models.draw import RaffleDraw
from ..models.event import WINNER_PICKED
from ..models.raffle import Raffle, RaffleState
from ..models.request import RandomnessRequest
from .ledger import EntryLedger
from .signals import emit

logger = logging.getLogger(__name__)


class PayoutProvider(Protocol):
    """Anything able to move funds out of the raffle wallet."""

    def transfer(self, recipient: str, amount: int) -> Any: ...


@dataclass(frozen=True)
class Settlement:
    """Effects of a settlement, computed before the transfer is attempted."""

    round_number: int
    winner_index: int
    winner: str
    amount: int
    random_value: int
    settled_at: datetime


class PayoutEngine:
    """Pays the pool to the winner and resets the raffle in one step.

    The settlement is staged first, the transfer is attempted next, and the
    staged effects are applied only once the transfer reports success. A
    transfer callback that re-enters the raffle therefore still sees the
    round as ``CALCULATING``.
    """

    def __init__(self, session: Session, payout: Optional[PayoutProvider]) -> None:
        self._session = session
        self._payout = payout

    def stage(
        self,
        raffle: Raffle,
        ticket: RandomnessRequest,
        winner_index: int,
        now: datetime,
    ) -> Settlement:
        if raffle.raffle_state is not RaffleState.CALCULATING:
            raise RaffleInvariantError(
                f"Raffle {raffle.id} cannot settle while {raffle.state}"
            )
        if ticket.round_number != raffle.round_number:
            raise RaffleInvariantError(
                f"Request {ticket.request_id} belongs to round {ticket.round_number}, "
                f"raffle is in round {raffle.round_number}"
            )
        try:
            winner = EntryLedger(self._session, raffle).participant_at(winner_index)
        except IndexError as exc:
            raise RaffleInvariantError(
                f"Winner index {winner_index} outside the closed round"
            ) from exc
        return Settlement(
            round_number=raffle.round_number,
            winner_index=winner_index,
            winner=winner,
            amount=raffle.pool,
            random_value=ticket.random_value or 0,
            settled_at=now,
        )

    def settle(
        self,
        raffle: Raffle,
        ticket: RandomnessRequest,
        winner_index: int,
        now: datetime,
    ) -> RaffleDraw:
        """Pay entry ``winner_index`` and reset the raffle for the next round.

        Raises
        ------
        TransferFailed
            If the payout is rejected. Nothing on the raffle is modified in
            that case.
        """
        settlement = self.stage(raffle, ticket, winner_index, now)
        tx_hash = self._transfer(settlement)
        return self._apply(raffle, ticket, settlement, tx_hash)

    def _transfer(self, settlement: Settlement) -> Optional[str]:
        if self._payout is None:
            raise ValueError("A payout provider is required to settle a draw")
        try:
            response = self._payout.transfer(settlement.winner, settlement.amount)
        except Exception as exc:
            logger.error(
                f"Payout of {settlement.amount} wei to {settlement.winner} raised: {exc}"
            )
            raise TransferFailed(settlement.winner, settlement.amount, str(exc)) from exc

        if not isinstance(response, dict) or response.get("status") != "success":
            message = response.get("message") if isinstance(response, dict) else None
            logger.error(
                f"Payout of {settlement.amount} wei to {settlement.winner} rejected: {response!r}"
            )
            raise TransferFailed(
                settlement.winner,
                settlement.amount,
                message or f"unexpected transfer response {response!r}",
            )
        return response.get("tx_hash")

    def _apply(
        self,
        raffle: Raffle,
        ticket: RandomnessRequest,
        settlement: Settlement,
        tx_hash: Optional[str],
    ) -> RaffleDraw:
        draw = RaffleDraw(
            raffle_id=raffle.id,
            randomness_request_id=ticket.id,
            round_number=settlement.round_number,
            random_value=settlement.random_value,
            winner_index=settlement.winner_index,
            winner=settlement.winner,
            amount=settlement.amount,
            tx_hash=tx_hash,
            settled_at=settlement.settled_at,
        )
        self._session.add(draw)

        raffle.recent_winner = settlement.winner
        raffle.last_draw_at = settlement.settled_at
        EntryLedger(self._session, raffle).reset()
        raffle.state = RaffleState.OPEN.value
        emit(
            self._session,
            raffle,
            WINNER_PICKED,
            at=settlement.settled_at,
            winner=settlement.winner,
        )
        self._session.flush()
        logger.info(
            f"Raffle {raffle.id} round {settlement.round_number}: {settlement.winner} "
            f"won {settlement.amount} wei (entry #{settlement.winner_index})"
        )
        return draw


__all__ = ["PayoutEngine", "PayoutProvider", "Settlement"]
