from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .types import Uint256

if TYPE_CHECKING:
    from .raffle import Raffle


class RaffleEntry(Base):
    """One paid entry into a raffle round.

    The same participant may hold several entries in a round; each row is a
    separate ticket. ``position`` is the 0-based index used for winner
    selection and is stable until the round is settled.
    """

    __tablename__ = "raffle_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        ForeignKey("raffles.id", ondelete="CASCADE"), nullable=False
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    participant: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(Uint256, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    raffle: Mapped["Raffle"] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint(
            "raffle_id", "round_number", "position", name="uq_raffle_entry_position"
        ),
        Index("ix_raffle_entries_round", "raffle_id", "round_number"),
        Index("ix_raffle_entries_participant", "participant"),
    )

    def __init__(
        self,
        *,
        raffle: Optional["Raffle"] = None,
        raffle_id: Optional[int] = None,
        round_number: int,
        position: int,
        participant: str,
        amount: int,
        created_at: Optional[datetime] = None,
    ) -> None:
        if raffle is not None:
            self.raffle = raffle
        if raffle_id is not None:
            self.raffle_id = raffle_id
        self.round_number = round_number
        self.position = position
        self.participant = participant
        self.amount = amount
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RaffleEntry(raffle_id={self.raffle_id}, round={self.round_number}, "
            f"position={self.position}, participant={self.participant})>"
        )
