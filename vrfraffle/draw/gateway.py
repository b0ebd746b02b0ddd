"""Two-phase randomness protocol between the raffle and the VRF coordinator."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import NonexistentRequest, RaffleInvariantError
from ..models.raffle import Raffle
from ..models.request import RandomnessRequest

logger = logging.getLogger(__name__)


class RandomnessCoordinator(Protocol):
    """Anything able to accept a VRF request and return its identifier."""

    def request_random_words(
        self,
        *,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int: ...


class RandomnessGateway:
    """Issues randomness requests and matches their fulfillments.

    ``request`` records a correlation ticket holding the context of the draw
    (round and participant count). ``consume`` accepts a fulfillment only if
    it echoes the identifier of the single pending ticket; every other
    identifier is rejected.
    """

    def __init__(self, session: Session, coordinator: Optional[RandomnessCoordinator]) -> None:
        self._session = session
        self._coordinator = coordinator

    def pending(self, raffle: Raffle) -> Optional[RandomnessRequest]:
        return RandomnessRequest.pending_for(self._session, raffle.id)

    def request(self, raffle: Raffle, participant_count: int, now: datetime) -> RandomnessRequest:
        """Ask the coordinator for randomness and store the pending ticket.

        The coordinator is called before anything is written, so a failing
        coordinator leaves no trace in the session.

        Raises
        ------
        RaffleInvariantError
            If a request is already pending or the coordinator reuses an
            identifier seen before.
        ValueError
            If no coordinator was supplied.
        """
        if self._coordinator is None:
            raise ValueError("A randomness coordinator is required to request a draw")
        if self.pending(raffle) is not None:
            raise RaffleInvariantError(
                f"Raffle {raffle.id} already has an outstanding randomness request"
            )

        request_id = int(
            self._coordinator.request_random_words(
                key_hash=raffle.key_hash,
                subscription_id=raffle.subscription_id,
                request_confirmations=raffle.request_confirmations,
                callback_gas_limit=raffle.callback_gas_limit,
                num_words=raffle.num_words,
            )
        )
        reused = self._session.scalar(
            select(RandomnessRequest.id).where(
                RandomnessRequest.raffle_id == raffle.id,
                RandomnessRequest.request_id == request_id,
            )
        )
        if reused is not None:
            raise RaffleInvariantError(
                f"Coordinator returned request id {request_id} which was already used"
            )

        ticket = RandomnessRequest(
            raffle_id=raffle.id,
            request_id=request_id,
            round_number=raffle.round_number,
            participant_count=participant_count,
            issued_at=now,
        )
        self._session.add(ticket)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise RaffleInvariantError(
                f"Raffle {raffle.id} already has an outstanding randomness request"
            ) from exc
        logger.debug(
            f"Raffle {raffle.id}: randomness request {request_id} pending "
            f"for {participant_count} entries"
        )
        return ticket

    def consume(
        self,
        raffle: Raffle,
        request_id: int,
        random_value: int,
        now: datetime,
    ) -> RandomnessRequest:
        """Match a fulfillment to the pending ticket and mark it answered.

        Raises
        ------
        NonexistentRequest
            If ``request_id`` was never issued or has already been consumed.
        """
        ticket = self.pending(raffle)
        if ticket is None or ticket.request_id != request_id:
            logger.warning(f"Raffle {raffle.id}: rejected fulfillment for request {request_id}")
            raise NonexistentRequest(request_id)

        ticket.status = "fulfilled"
        ticket.random_value = random_value
        ticket.fulfilled_at = now
        self._session.flush()
        return ticket


__all__ = ["RandomnessCoordinator", "RandomnessGateway"]
