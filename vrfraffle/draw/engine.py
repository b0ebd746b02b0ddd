"""Raffle state machine driving entries, draws and settlements."""

from __future__ import annotations

import functools
import logging
import threading
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..db.utils import ensure_utc
from ..exceptions import OnlyCoordinatorCanFulfill, UpkeepNotNeeded
from ..models.draw import RaffleDraw
from ..models.entry import RaffleEntry
from ..models.event import REQUESTED_RAFFLE_WINNER
from ..models.raffle import Raffle, RaffleState
from ..models.request import RandomnessRequest
from .gateway import RandomnessCoordinator, RandomnessGateway
from .ledger import EntryLedger
from .payout import PayoutEngine, PayoutProvider
from .selection import select_winner_index
from .signals import emit
from .upkeep import UpkeepStatus, evaluate_upkeep

logger = logging.getLogger(__name__)

# Serializes every public operation across engines in this process. Reentrant
# so that a payout callback re-entering the engine hits the state checks
# instead of blocking on itself.
RAFFLE_LOCK = threading.RLock()


def _serialized(method):
    @functools.wraps(method)
    def wrapper(self: "RaffleEngine", *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


def _now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else datetime.now(timezone.utc)


class RaffleEngine:
    """Operations of a single raffle, bound to a SQLAlchemy session.

    Operations flush their changes but never commit; the caller owns the
    transaction. Each operation validates everything it needs before its
    first write, so a failed call leaves the session as it found it.
    """

    def __init__(
        self,
        session: Session,
        raffle: Raffle,
        *,
        coordinator: Optional[RandomnessCoordinator] = None,
        payout: Optional[PayoutProvider] = None,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        """Create an engine for ``raffle``.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        raffle : Raffle
            Persisted raffle to operate on.
        coordinator : Optional[RandomnessCoordinator], default: None
            VRF coordinator client. Required by :meth:`perform_upkeep`.
        payout : Optional[PayoutProvider], default: None
            Wallet client used to pay winners. Required by
            :meth:`fulfill_random_words`.
        lock : Optional[threading.RLock], default: None
            Lock serializing operations. Defaults to the process-wide
            :data:`RAFFLE_LOCK`.
        """
        if raffle.id is None:
            raise ValueError("Raffle must be persisted before it can be operated")
        self._session = session
        self._raffle = raffle
        self._ledger = EntryLedger(session, raffle)
        self._gateway = RandomnessGateway(session, coordinator)
        self._payout = PayoutEngine(session, payout)
        self._lock = lock or RAFFLE_LOCK

    @property
    def raffle(self) -> Raffle:
        return self._raffle

    @property
    def ledger(self) -> EntryLedger:
        return self._ledger

    # -------- entries --------
    @_serialized
    def enter(self, participant: str, value: int, *, now: Optional[datetime] = None) -> RaffleEntry:
        """Record an entry paid with ``value`` wei. See :meth:`EntryLedger.enter`."""
        return self._ledger.enter(participant, value, now=_now(now))

    # -------- upkeep --------
    @_serialized
    def check_upkeep(self, now: Optional[datetime] = None) -> UpkeepStatus:
        """Evaluate whether a draw may start. Never modifies the raffle."""
        return self._check(_now(now))

    def _check(self, now: datetime) -> UpkeepStatus:
        return evaluate_upkeep(
            state=self._raffle.raffle_state,
            last_draw_at=self._raffle.last_draw_at,
            interval_seconds=self._raffle.interval_seconds,
            pool=self._raffle.pool,
            participant_count=self._ledger.count(),
            now=now,
        )

    @_serialized
    def perform_upkeep(self, now: Optional[datetime] = None) -> RandomnessRequest:
        """Close the round and request randomness for its draw.

        Returns
        -------
        RandomnessRequest
            The pending ticket; ``request_id`` is what the coordinator will
            echo back.

        Raises
        ------
        UpkeepNotNeeded
            If any upkeep condition fails, including when another agent
            (in this process or another one) closed the round first.
        """
        at = _now(now)
        status = self._check(at)
        if not status.upkeep_needed:
            raise self._not_needed(status)

        # The raffle row is claimed with a conditional UPDATE before the
        # coordinator is called. The statement takes the row lock (the write
        # lock on SQLite) and only matches while the committed state is
        # still OPEN, so at most one agent per round gets past this point.
        if not self._claim_round():
            self._session.refresh(self._raffle, ["state"])
            raise self._not_needed(self._check(at))

        try:
            ticket = self._gateway.request(self._raffle, self._ledger.count(), at)
        except Exception:
            # A failed flush has already rolled the transaction back.
            if self._session.is_active:
                self._release_round()
            raise
        self._raffle.state = RaffleState.CALCULATING.value
        emit(
            self._session,
            self._raffle,
            REQUESTED_RAFFLE_WINNER,
            at=at,
            request_id=ticket.request_id,
        )
        self._session.flush()
        logger.info(
            f"Raffle {self._raffle.id} round {self._raffle.round_number}: "
            f"requested winner with request {ticket.request_id}"
        )
        return ticket

    def _not_needed(self, status: UpkeepStatus) -> UpkeepNotNeeded:
        return UpkeepNotNeeded(
            status,
            pool=self._raffle.pool,
            participant_count=self._ledger.count(),
            state=self._raffle.state,
        )

    def _set_state_where(self, current: RaffleState, new: RaffleState) -> int:
        result = self._session.execute(
            update(Raffle)
            .where(Raffle.id == self._raffle.id, Raffle.state == current.value)
            .values(state=new.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _claim_round(self) -> bool:
        return self._set_state_where(RaffleState.OPEN, RaffleState.CALCULATING) == 1

    def _release_round(self) -> None:
        self._set_state_where(RaffleState.CALCULATING, RaffleState.OPEN)

    # -------- fulfillment --------
    @_serialized
    def fulfill_random_words(
        self,
        request_id: int,
        random_words: Sequence[int],
        *,
        caller: str,
        now: Optional[datetime] = None,
    ) -> RaffleDraw:
        """Deliver the coordinator's answer, pick the winner and pay out.

        Parameters
        ----------
        request_id : int
            Identifier of the pending request being answered.
        random_words : Sequence[int]
            Words produced by the coordinator; only the first is used.
        caller : str
            Identity of the party delivering the words. Must match the
            raffle's ``coordinator_address``.
        now : Optional[datetime], default: None
            Settlement time recorded as the new last draw timestamp.

        Raises
        ------
        OnlyCoordinatorCanFulfill
            If ``caller`` is not the configured coordinator.
        ValueError
            If ``random_words`` is empty.
        NonexistentRequest
            If ``request_id`` does not match the pending request.
        TransferFailed
            If the payout fails. The request stays consumed and the raffle
            stays ``CALCULATING``; there is no automatic retry.
        """
        if caller != self._raffle.coordinator_address:
            raise OnlyCoordinatorCanFulfill(caller, self._raffle.coordinator_address)
        if not random_words:
            raise ValueError("random_words must contain at least one word")
        return self._fulfill(int(request_id), int(random_words[0]), _now(now))

    def _fulfill(self, request_id: int, random_value: int, now: datetime) -> RaffleDraw:
        if random_value < 0:
            raise ValueError("random words must be non-negative")
        ticket = self._gateway.consume(self._raffle, request_id, random_value, now)
        winner_index = select_winner_index(random_value, ticket.participant_count)
        return self._payout.settle(self._raffle, ticket, winner_index, now)

    # -------- accessors --------
    @property
    def entrance_fee(self) -> int:
        return self._raffle.entrance_fee

    @property
    def interval(self) -> int:
        return self._raffle.interval_seconds

    @property
    def raffle_state(self) -> RaffleState:
        return self._raffle.raffle_state

    @property
    def number_of_players(self) -> int:
        return self._ledger.count()

    def get_player(self, index: int) -> str:
        return self._ledger.participant_at(index)

    @property
    def recent_winner(self) -> Optional[str]:
        return self._raffle.recent_winner

    @property
    def latest_timestamp(self) -> datetime:
        return ensure_utc(self._raffle.last_draw_at)

    @property
    def num_words(self) -> int:
        return self._raffle.num_words

    @property
    def request_confirmations(self) -> int:
        return self._raffle.request_confirmations

    @property
    def pending_request(self) -> Optional[RandomnessRequest]:
        return self._gateway.pending(self._raffle)


__all__ = ["RAFFLE_LOCK", "RaffleEngine"]
