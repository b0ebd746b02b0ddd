"""Ordered ledger of entries and pool balance for the current round."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..exceptions import InsufficientPayment, RaffleNotOpen
from ..models.entry import RaffleEntry
from ..models.event import RAFFLE_ENTER
from ..models.raffle import Raffle
from .signals import emit

logger = logging.getLogger(__name__)


class EntryLedger:
    """View over the entries of ``raffle``'s current round.

    Rounds are never deleted: resetting the ledger advances
    ``Raffle.round_number`` so that earlier entries drop out of every query
    while remaining available as history.
    """

    def __init__(self, session: Session, raffle: Raffle) -> None:
        """Bind the ledger to ``raffle``.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        raffle : Raffle
            Persisted raffle whose current round is exposed.

        Raises
        ------
        ValueError
            If the raffle has not been flushed yet.
        """
        if raffle.id is None:
            raise ValueError("Raffle must be persisted before using its ledger")
        self._session = session
        self._raffle = raffle

    def _current_round(self):
        return select(RaffleEntry).where(
            RaffleEntry.raffle_id == self._raffle.id,
            RaffleEntry.round_number == self._raffle.round_number,
        )

    @property
    def pool(self) -> int:
        return self._raffle.pool

    def count(self) -> int:
        stmt = select(func.count(RaffleEntry.id)).where(
            RaffleEntry.raffle_id == self._raffle.id,
            RaffleEntry.round_number == self._raffle.round_number,
        )
        return int(self._session.scalar(stmt) or 0)

    def participants(self) -> list[str]:
        """Return the participants of the current round in entry order."""
        stmt = self._current_round().order_by(RaffleEntry.position.asc())
        return [entry.participant for entry in self._session.scalars(stmt)]

    def participant_at(self, index: int) -> str:
        """Return the participant holding entry ``index``.

        Raises
        ------
        IndexError
            If no entry with that index exists in the current round.
        """
        if index < 0:
            raise IndexError(f"entry index {index} out of range")
        entry = self._session.scalar(
            self._current_round().where(RaffleEntry.position == index)
        )
        if entry is None:
            raise IndexError(f"entry index {index} out of range")
        return entry.participant

    def enter(
        self,
        participant: str,
        paid_amount: int,
        *,
        now: Optional[datetime] = None,
    ) -> RaffleEntry:
        """Append one entry for ``participant`` and add ``paid_amount`` to the pool.

        Paying more than the entrance fee is allowed; the whole amount goes
        into the pool.

        Raises
        ------
        InsufficientPayment
            If ``paid_amount`` is below the entrance fee. Checked first, so
            an underpaid entry fails this way in any state.
        RaffleNotOpen
            If a draw is outstanding.
        ValueError
            If ``participant`` is empty.
        """
        if paid_amount < self._raffle.entrance_fee:
            raise InsufficientPayment(paid_amount, self._raffle.entrance_fee)
        if not self._raffle.is_open:
            raise RaffleNotOpen(self._raffle.state)
        participant = (participant or "").strip()
        if not participant:
            raise ValueError("participant must not be empty")

        at = now or datetime.now(timezone.utc)
        entry = RaffleEntry(
            raffle_id=self._raffle.id,
            round_number=self._raffle.round_number,
            position=self.count(),
            participant=participant,
            amount=paid_amount,
            created_at=at,
        )
        self._session.add(entry)
        self._raffle.pool = self._raffle.pool + paid_amount
        emit(self._session, self._raffle, RAFFLE_ENTER, at=at, participant=participant)
        self._session.flush()
        logger.debug(
            f"Raffle {self._raffle.id} round {self._raffle.round_number}: "
            f"entry #{entry.position} for {participant} ({paid_amount} wei)"
        )
        return entry

    def reset(self) -> None:
        """Close the current round and zero the pool.

        Only :class:`~vrfraffle.draw.payout.PayoutEngine` calls this, as part
        of a successful settlement.
        """
        self._raffle.round_number = self._raffle.round_number + 1
        self._raffle.pool = 0


__all__ = ["EntryLedger"]
