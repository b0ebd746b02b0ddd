import logging
from typing import TYPE_CHECKING, Optional, Sequence
from datetime import datetime

from sqlalchemy.orm import Session

from .config import RaffleSettings
from .draw.engine import RaffleEngine
from .draw.gateway import RandomnessCoordinator
from .draw.payout import PayoutProvider
from .exceptions import OnlyCoordinatorCanFulfill, TransferFailed, UpkeepNotNeeded
from .models import Raffle, RaffleDraw, RaffleEntry

if TYPE_CHECKING:
    from .blockchain.api import CoordinatorClient

logger = logging.getLogger(__name__)


def _default_client() -> "CoordinatorClient":
    from .blockchain.api import CoordinatorClient

    return CoordinatorClient()


def create_raffle(
    session: Session,
    settings: Optional[RaffleSettings] = None,
    *,
    now: Optional[datetime] = None,
) -> Raffle:
    """Persist a new raffle configured from ``settings``.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    settings : Optional[RaffleSettings]
        Immutable configuration. When omitted it is read from the environment
        with :meth:`RaffleSettings.from_env`.
    now : Optional[datetime]
        Creation time; also starts the interval clock of the first round.

    Returns
    -------
    Raffle
        The flushed raffle, ``OPEN`` with an empty ledger.
    """
    settings = settings or RaffleSettings.from_env()
    raffle = Raffle(
        entrance_fee=settings.entrance_fee,
        interval_seconds=settings.interval_seconds,
        key_hash=settings.key_hash,
        subscription_id=settings.subscription_id,
        coordinator_address=settings.coordinator_address,
        request_confirmations=settings.request_confirmations,
        callback_gas_limit=settings.callback_gas_limit,
        num_words=settings.num_words,
        created_at=now,
    )
    session.add(raffle)
    session.flush()
    return raffle


def enter_raffle(
    session: Session,
    raffle: Raffle,
    participant: str,
    value: int,
    *,
    now: Optional[datetime] = None,
) -> RaffleEntry:
    """Enter ``participant`` into the current round, paying ``value`` wei.

    Raises
    ------
    InsufficientPayment
        If ``value`` is below the entrance fee.
    RaffleNotOpen
        If a draw is outstanding.
    """
    return RaffleEngine(session, raffle).enter(participant, value, now=now)


def check_upkeep(
    session: Session,
    raffle: Raffle,
    data: bytes = b"",
    *,
    now: Optional[datetime] = None,
) -> tuple[bool, bytes]:
    """Return ``(upkeep_needed, perform_data)`` for the automation agent.

    ``data`` is accepted for interface compatibility and ignored;
    ``perform_data`` is always empty. The call is read-only.
    """
    status = RaffleEngine(session, raffle).check_upkeep(now)
    return status.upkeep_needed, b""


def perform_upkeep(
    session: Session,
    raffle: Raffle,
    data: bytes = b"",
    *,
    coordinator: Optional[RandomnessCoordinator] = None,
    now: Optional[datetime] = None,
) -> int:
    """Start the draw of the current round and return the VRF request id.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    raffle : Raffle
        Raffle whose round is being closed.
    data : bytes
        Ignored; mirrors ``check_upkeep``'s perform data.
    coordinator : Optional[RandomnessCoordinator]
        Coordinator client. A default :class:`CoordinatorClient` is created
        when omitted.
    now : Optional[datetime]
        Time used for the upkeep check.

    Raises
    ------
    UpkeepNotNeeded
        If the raffle is not eligible for a draw at ``now``.
    """
    if coordinator is None:
        coordinator = _default_client()
    engine = RaffleEngine(session, raffle, coordinator=coordinator)
    return engine.perform_upkeep(now).request_id


def fulfill_random_words(
    session: Session,
    raffle: Raffle,
    request_id: int,
    random_words: Sequence[int],
    *,
    caller: str,
    payout: Optional[PayoutProvider] = None,
    now: Optional[datetime] = None,
) -> RaffleDraw:
    """Deliver random words for ``request_id`` and settle the round.

    Only the raffle's configured coordinator may call this; ``caller`` is the
    authenticated identity of the party delivering the words. The caller is
    checked before the default wallet client logs in.

    When paying the winner fails, the session is committed before
    :class:`TransferFailed` propagates. The consumed request and the
    ``CALCULATING`` raffle are therefore persisted even when the caller's
    ``with Session.begin():`` block rolls back on the exception, and a second
    delivery of the same words is rejected with :class:`NonexistentRequest`.
    Anything else pending in ``session`` is committed along with them.

    Raises
    ------
    OnlyCoordinatorCanFulfill
        If ``caller`` is not the coordinator.
    NonexistentRequest
        If ``request_id`` is not the pending request.
    TransferFailed
        If paying the winner fails.
    """
    if caller != raffle.coordinator_address:
        raise OnlyCoordinatorCanFulfill(caller, raffle.coordinator_address)
    if payout is None:
        payout = _default_client()
    engine = RaffleEngine(session, raffle, payout=payout)
    try:
        return engine.fulfill_random_words(
            request_id, random_words, caller=caller, now=now
        )
    except TransferFailed:
        logger.error(
            f"Raffle {raffle.id}: payout for request {request_id} failed; "
            "request consumed, raffle left calculating"
        )
        session.commit()
        raise


def run_upkeep_once(
    session: Session,
    raffle: Raffle,
    *,
    coordinator: Optional[RandomnessCoordinator] = None,
    now: Optional[datetime] = None,
) -> Optional[int]:
    """One polling step of an automation agent.

    Checks upkeep and, when needed, performs it. Returns the new request id,
    or ``None`` when there was nothing to do or another agent won the race.
    """
    needed, perform_data = check_upkeep(session, raffle, now=now)
    if not needed:
        return None
    try:
        return perform_upkeep(
            session, raffle, perform_data, coordinator=coordinator, now=now
        )
    except UpkeepNotNeeded:
        return None


def get_raffle_summary(session: Session, raffle: Raffle) -> dict:
    """Return the raffle's read accessors as a JSON-friendly dict."""
    engine = RaffleEngine(session, raffle)
    summary = raffle.to_json()
    summary["number_of_players"] = engine.number_of_players
    pending = engine.pending_request
    summary["pending_request_id"] = (
        str(pending.request_id) if pending is not None else None
    )
    return summary
