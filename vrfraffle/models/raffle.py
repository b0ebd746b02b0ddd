"""Database model holding the configuration and round state of a raffle."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    String,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base
from .types import Uint256

if TYPE_CHECKING:
    from .draw import RaffleDraw
    from .entry import RaffleEntry
    from .event import RaffleEvent
    from .request import RandomnessRequest


class RaffleState(str, enum.Enum):
    """Lifecycle state of a raffle round."""

    OPEN = "open"
    CALCULATING = "calculating"


class Raffle(Base):
    """A single raffle: immutable configuration plus the state of its current round.

    The configuration columns (entrance fee, interval and the VRF request
    parameters) are written once at creation and never updated afterwards.
    """

    __tablename__ = "raffles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    entrance_fee: Mapped[int] = mapped_column(Uint256, nullable=False)
    """Minimum payment per entry, in wei."""

    interval_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    """Minimum number of seconds between two draws."""

    key_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    """VRF gas lane (key hash) passed through to the coordinator."""

    subscription_id: Mapped[int] = mapped_column(Uint256, nullable=False)
    """VRF subscription funding the randomness requests."""

    request_confirmations: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    """Block confirmations the coordinator waits for before answering."""

    callback_gas_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=500000)
    """Resource limit for the fulfillment callback."""

    num_words: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Number of random words requested per draw."""

    coordinator_address: Mapped[str] = mapped_column(String(255), nullable=False)
    """Identity of the only caller allowed to fulfill randomness requests."""

    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RaffleState.OPEN.value
    )
    """Current :class:`RaffleState` value."""

    pool: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    """Sum of the payments collected in the current round, in wei."""

    round_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Round currently collecting entries. Advanced by every settlement."""

    last_draw_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp of the last completed draw (creation time before the first one)."""

    recent_winner: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Participant paid out by the most recent draw."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    entries: Mapped[list["RaffleEntry"]] = relationship(
        back_populates="raffle",
        cascade="all, delete-orphan",
        order_by="RaffleEntry.id",
    )
    requests: Mapped[list["RandomnessRequest"]] = relationship(
        back_populates="raffle",
        cascade="all, delete-orphan",
    )
    draws: Mapped[list["RaffleDraw"]] = relationship(
        back_populates="raffle",
        cascade="all, delete-orphan",
    )
    events: Mapped[list["RaffleEvent"]] = relationship(
        back_populates="raffle",
        cascade="all, delete-orphan",
        order_by="RaffleEvent.id",
    )

    __table_args__ = (
        CheckConstraint("state IN ('open','calculating')", name="state_enum"),
        CheckConstraint("interval_seconds >= 0", name="interval_non_negative"),
        CheckConstraint("num_words >= 1", name="num_words_positive"),
    )

    def __init__(
        self,
        *,
        entrance_fee: int,
        interval_seconds: int,
        key_hash: str,
        subscription_id: int,
        coordinator_address: str,
        request_confirmations: int = 3,
        callback_gas_limit: int = 500000,
        num_words: int = 1,
        last_draw_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        if entrance_fee <= 0:
            raise ValueError("entrance_fee must be a positive amount")
        if interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        if num_words < 1:
            raise ValueError("num_words must be at least 1")
        if not coordinator_address:
            raise ValueError("coordinator_address is required")

        self.entrance_fee = entrance_fee
        self.interval_seconds = interval_seconds
        self.key_hash = key_hash
        self.subscription_id = subscription_id
        self.coordinator_address = coordinator_address
        self.request_confirmations = request_confirmations
        self.callback_gas_limit = callback_gas_limit
        self.num_words = num_words
        self.state = RaffleState.OPEN.value
        self.pool = 0
        self.round_number = 1
        now = datetime.now(timezone.utc)
        self.created_at = created_at or now
        # The clock starts at creation so the first round also waits one interval.
        self.last_draw_at = last_draw_at or self.created_at

    @property
    def raffle_state(self) -> RaffleState:
        return RaffleState(self.state)

    @property
    def is_open(self) -> bool:
        return self.raffle_state is RaffleState.OPEN

    def to_json(self) -> dict:
        """Serialize configuration and round state to a JSON-friendly dict.

        Wei amounts and the subscription id are rendered as strings since
        they may exceed the integer range of JSON consumers.
        """
        return {
            "id": self.id,
            "entrance_fee": str(self.entrance_fee),
            "interval_seconds": self.interval_seconds,
            "key_hash": self.key_hash,
            "subscription_id": str(self.subscription_id),
            "request_confirmations": self.request_confirmations,
            "callback_gas_limit": self.callback_gas_limit,
            "num_words": self.num_words,
            "coordinator_address": self.coordinator_address,
            "state": self.state,
            "pool": str(self.pool),
            "round_number": self.round_number,
            "last_draw_at": dt_iso(self.last_draw_at),
            "recent_winner": self.recent_winner,
            "created_at": dt_iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Raffle(id={self.id}, state={self.state}, round={self.round_number}, "
            f"pool={self.pool}, entrance_fee={self.entrance_fee})>"
        )

    @classmethod
    def get_by_id(cls, session: Session, raffle_id: int) -> Optional["Raffle"]:
        """Return the raffle with primary key ``raffle_id`` if it exists."""

        return session.scalar(select(cls).where(cls.id == raffle_id))


__all__ = ["Raffle", "RaffleState"]
